from shim.cli.main import cli

cli()
