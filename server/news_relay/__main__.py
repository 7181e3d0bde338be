from news_relay.main import run

run()
