from svreport.cli import app

app()
