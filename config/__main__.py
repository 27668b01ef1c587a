"""Command line interface for checking configuration loading"""
from . import settings_conf


def main():
    """Display loaded configuration"""
    print("\nSettings Configuration:")
    print("-" * 50)
    for key, value in settings_conf.items():
        if key == 'jwt_secret':
            value = '********' if value else '(random per process)'
        print(f"{key}: {value}")


if __name__ == "__main__":
    main()
