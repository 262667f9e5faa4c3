import os
import sys

# Add the project directory to the python path
project_home = os.path.dirname(os.path.abspath(__file__))
if project_home not in sys.path:
    sys.path = [project_home] + sys.path

from stathq.main import app
from a2wsgi import ASGIMiddleware

# WSGI hosts serve the ASGI FastAPI app through this wrapper
application = ASGIMiddleware(app)
