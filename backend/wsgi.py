from madeh import create_app

app = create_app()
