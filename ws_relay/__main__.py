"""Run the relay: python -m ws_relay"""

from ws_relay.main import run

run()
