from .cli import app

app(prog_name="mongo-bulk")
