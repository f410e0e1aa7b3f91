from aicommit.cli.main import run

run()
