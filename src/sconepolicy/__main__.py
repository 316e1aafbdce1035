from sconepolicy.cli import app

app(prog_name="sconepolicy")
