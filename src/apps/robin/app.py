import typer

from apps.robin.ledger import init_ledger
from apps.robin.validate import validate


app = typer.Typer(help="Robin archive upload validation command line interface")

app.command("validate")(validate)
app.command("init-ledger")(init_ledger)
