from lbp import create_app

app = create_app()
