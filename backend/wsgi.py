from vendorhub import create_app

app = create_app()
