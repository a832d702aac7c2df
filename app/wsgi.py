from app.nexus import create_app

app = create_app()
