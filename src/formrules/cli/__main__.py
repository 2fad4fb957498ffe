from formrules.cli import app

app(prog_name="formrules")
