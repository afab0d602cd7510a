"""Command-line interface for station climate."""

import click

from station_climate import __version__
from station_climate.cli_climate import climate_cli


@click.group()
@click.version_option(__version__)
def main() -> None:
    """Station Climate: climate estimates for any point from station observations."""


main.add_command(climate_cli, name="climate")


if __name__ == "__main__":
    main()
