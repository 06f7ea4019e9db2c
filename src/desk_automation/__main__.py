from desk_automation.cli import app

app(prog_name="desk-automation")
