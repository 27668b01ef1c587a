""" Proximity search shared by listings and services """
from typing import Optional, List, Dict, Any
import logging

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371000


def distance_sql(lat_param: int, lng_param: int, alias: str = 'c') -> str:
    """Great-circle (haversine) distance in metres between a row and a point."""
    return f"""
        {EARTH_RADIUS_M} * 2 * ASIN(SQRT(LEAST(1.0,
            POWER(SIN(RADIANS({alias}.latitude - ${lat_param}) / 2), 2) +
            COS(RADIANS(${lat_param})) * COS(RADIANS({alias}.latitude)) *
            POWER(SIN(RADIANS({alias}.longitude - ${lng_param}) / 2), 2)
        )))
    """


async def search_nearby(
    conn,
    table: str,
    columns: List[str],
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    radius_km: Optional[float] = None,
    category: Optional[str] = None,
    limit: int = 50
) -> List[Dict[str, Any]]:
    """Find active catalog entries near a point.

    Args:
        conn: Database connection
        table: 'listings' or 'services'
        columns: Columns of the table to project
        latitude: Optional latitude in decimal degrees
        longitude: Optional longitude in decimal degrees
        radius_km: Search radius in kilometres, used only with both coordinates
        category: Optional category; 'all' or empty disables the filter
        limit: Maximum number of results to return

    Returns:
        Rows newest first, each with an owner projection {id, name, rating}
        and, for proximity queries, distance_km
    """
    select = [f"c.{col}" for col in columns]
    select += ["u.name AS owner_name", "u.rating AS owner_rating"]
    query_where = ["c.status = 'active'"]
    params = []
    param_idx = 1

    proximity = latitude is not None and longitude is not None
    if proximity:
        distance = distance_sql(param_idx, param_idx + 1)
        params.extend([latitude, longitude])
        param_idx += 2
        select.append(f"({distance}) / 1000.0 AS distance_km")
        query_where.append(f"({distance}) <= ${param_idx}")
        params.append(radius_km * 1000)  # kilometres to metres
        param_idx += 1

    if category and category != 'all':
        query_where.append(f"c.category = ${param_idx}")
        params.append(category)
        param_idx += 1

    query = f"""
        SELECT {', '.join(select)}
        FROM {table} c
        JOIN users u ON u.id = c.user_id
        WHERE {' AND '.join(query_where)}
        ORDER BY c.created_at DESC
        LIMIT ${param_idx}
    """
    params.append(limit)

    logger.debug("Executing nearby query on %s with params: %r", table, params)
    rows = await conn.fetch(query, *params)
    return [with_owner(row) for row in rows]


def with_owner(row) -> Dict[str, Any]:
    """Fold the joined owner_* columns into an 'owner' projection."""
    item = dict(row)
    owner = {'id': item['user_id']}
    for key in list(item):
        if key.startswith('owner_'):
            owner[key[len('owner_'):]] = item.pop(key)
    item['owner'] = owner
    return item
