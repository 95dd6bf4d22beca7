from propledger import create_app

app = create_app()
