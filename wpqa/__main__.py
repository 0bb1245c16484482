from wpqa.cli import cli

cli()
