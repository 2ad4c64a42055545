import pytest
import importlib.util
import pathlib
import sys
import json
import httpx

# Dynamically load helpers from tests/utils so pytest can import conftest
_utils_dir = pathlib.Path(__file__).parent / "utils"

def _load_util_module(name: str, filename: str):
    spec = importlib.util.spec_from_file_location(name, str(_utils_dir / filename))
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)
    return mod

_ca = _load_util_module("tests_utils_ca", "ca.py")
_loglists = _load_util_module("tests_utils_loglists", "loglists.py")

make_root_ca = _ca.make_root_ca
b64_der = _ca.b64_der
der = _ca.der
make_log_key = _ca.make_log_key
make_log = _loglists.make_log
make_log_list = _loglists.make_log_list
USABLE = _loglists.USABLE
QUALIFIED = _loglists.QUALIFIED
RETIRED = _loglists.RETIRED

# Ensure repository root is on sys.path so `ctroots` and `roots_tool` can be imported
repo_root = str(pathlib.Path(__file__).parent.parent)
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

@pytest.fixture(scope="session")
def roots():
    """Three distinct self-signed roots shared by every test."""
    return [make_root_ca(f"Test Root {i}")['cert'] for i in range(3)]

@pytest.fixture
def store_dir(tmp_path):
    return str(tmp_path / "store")

@pytest.fixture
def log_key_factory():
    return make_log_key

@pytest.fixture
def roots_document():
    """Build a get-roots JSON body from certificates (or raw base64 strings)."""
    def _make(items):
        return json.dumps({
            "certificates": [i if isinstance(i, str) else b64_der(i) for i in items]
        }).encode()
    return _make

class FakeCTLogs:
    """
    Routes get-roots requests by host through httpx.MockTransport.

    Each host maps to a list of responses consumed in order; the last one is
    repeated. A response is an int status, bytes body, or an exception class.
    """
    def __init__(self):
        self.routes = {}
        self.calls = {}

    def add(self, host: str, *responses):
        self.routes[host] = list(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        n = self.calls.get(host, 0)
        self.calls[host] = n + 1
        responses = self.routes.get(host, [404])
        r = responses[min(n, len(responses) - 1)]
        if isinstance(r, type) and issubclass(r, Exception):
            raise r("simulated failure", request=request)
        if isinstance(r, int):
            return httpx.Response(r, request=request)
        return httpx.Response(200, content=r, request=request)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

@pytest.fixture
def fake_logs():
    return FakeCTLogs()

@pytest.fixture
def no_sleep():
    slept = []
    def _sleep(seconds):
        slept.append(seconds)
    _sleep.calls = slept
    return _sleep

@pytest.fixture
def loglists():
    """The tests/utils/loglists.py builders (make_log, make_log_list, states)."""
    return _loglists

@pytest.fixture
def ca():
    return _ca
