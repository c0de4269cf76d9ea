from aiohttp import web
from aiohttp.test_utils import TestServer

from conftest import run
from core.pinning import PinataClient


def _fake_pinata(status=200, payload=None):
    seen = {}

    async def pin(request):
        seen["auth"] = request.headers.get("Authorization")
        seen["content_type"] = request.headers.get("Content-Type")
        seen["body"] = await request.read()
        if status != 200:
            return web.Response(status=status, text="Invalid authentication")
        return web.json_response(payload or {"IpfsHash": "QmTest", "PinSize": 10})

    app = web.Application()
    app.router.add_post("/pinning/pinFileToIPFS", pin)
    return app, seen


async def _pin(app, body, content_type, jwt="secret-jwt"):
    async with TestServer(app) as server:
        client = PinataClient(jwt, endpoint=str(server.make_url("/pinning/pinFileToIPFS")))
        return await client.pin_file(body, content_type)


def test_pin_forwards_body_and_headers():
    app, seen = _fake_pinata()
    ctype = "multipart/form-data; boundary=xyz"
    body = b"--xyz\r\nfile-bytes\r\n--xyz--\r\n"

    result = run(_pin(app, body, ctype))

    assert result.success
    assert result.ipfs_hash == "QmTest"
    assert result.url == "https://gateway.pinata.cloud/ipfs/QmTest"
    assert seen["auth"] == "Bearer secret-jwt"
    assert seen["content_type"] == ctype
    assert seen["body"] == body


def test_pin_non_ok_status():
    app, _ = _fake_pinata(status=401)
    result = run(_pin(app, b"x", "multipart/form-data; boundary=a"))
    assert not result.success
    assert result.status == 401
    assert "Invalid authentication" in result.error


def test_pin_missing_hash():
    app, _ = _fake_pinata(payload={"unexpected": True})
    result = run(_pin(app, b"x", "multipart/form-data; boundary=a"))
    assert not result.success
    assert result.url == ""


def test_configured():
    assert PinataClient("jwt").configured
    assert not PinataClient("").configured
