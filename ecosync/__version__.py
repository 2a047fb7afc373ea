from importlib.metadata import PackageNotFoundError
from importlib.metadata import version

try:
    __version__ = version('ecosync')
except PackageNotFoundError:
    # Running from a source checkout without `pip install -e .`
    __version__ = '0.0.0-dev'
