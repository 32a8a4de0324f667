from sequencer_bridge.cli.main import app

app()
