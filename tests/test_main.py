from config import SERVER_PORT
from main import parse_args


def test_defaults():
    args = parse_args([])
    assert args.port == SERVER_PORT
    assert not args.debug
    assert not args.no_browser


def test_flags():
    args = parse_args(["--host", "127.0.0.1", "--port", "8080", "--debug", "--no-browser"])
    assert args.host == "127.0.0.1"
    assert args.port == 8080
    assert args.debug
    assert args.no_browser
