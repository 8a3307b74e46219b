from deckdu.cli import app

app(prog_name="deckdu")
