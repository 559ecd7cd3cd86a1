"""Global test configuration and fixtures."""

import io
import json
from unittest.mock import MagicMock

import pytest
import urllib3

from dp_api_clients.cantabular import (
    CantabularClient,
    CantabularConfig,
    Category,
    Dimension,
    Table,
    Variable,
)

CITIES = [("0", "London"), ("1", "Liverpool"), ("2", "Belfast")]
SIBLINGS = [
    ("0", "No siblings"),
    ("1", "1 sibling"),
    ("2", "2 siblings"),
    ("3", "3 siblings"),
    ("4", "4 siblings"),
    ("5", "5 siblings"),
    ("6", "6 or more siblings"),
]
VALUES = [1, 0, 0, 1, 0, 0, 0, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, 0, 1, 1]

EXPECTED_CSV = """City,Number of siblings,count
London,No siblings,1
London,1 sibling,0
London,2 siblings,0
London,3 siblings,1
London,4 siblings,0
London,5 siblings,0
London,6 or more siblings,0
Liverpool,No siblings,0
Liverpool,1 sibling,0
Liverpool,2 siblings,0
Liverpool,3 siblings,0
Liverpool,4 siblings,1
Liverpool,5 siblings,0
Liverpool,6 or more siblings,0
Belfast,No siblings,0
Belfast,1 sibling,0
Belfast,2 siblings,1
Belfast,3 siblings,0
Belfast,4 siblings,0
Belfast,5 siblings,1
Belfast,6 or more siblings,1
"""


def make_dimension(name, label, categories, count=None):
    return Dimension(
        variable=Variable(name=name, label=label),
        categories=[Category(code=code, label=lbl) for code, lbl in categories],
        count=count,
    )


def raw_dimension(name, label, categories, count=None):
    """JSON form of a dimension as returned by the GraphQL API."""
    return {
        "categories": [{"code": code, "label": lbl} for code, lbl in categories],
        "count": len(categories) if count is None else count,
        "variable": {"label": label, "name": name},
    }


def static_dataset_body(dimensions=None, values=None, error=None):
    """Build a static dataset query response body."""
    if dimensions is None:
        dimensions = [
            raw_dimension("city", "City", CITIES),
            raw_dimension("siblings", "Number of siblings", SIBLINGS),
        ]
    return {
        "data": {
            "dataset": {
                "table": {
                    "dimensions": dimensions,
                    "error": error,
                    "values": VALUES if values is None else values,
                }
            }
        }
    }


def not_found_body():
    return {
        "data": {"dataset": None},
        "errors": [
            {
                "message": "404 Not Found: dataset not loaded in this server",
                "locations": [{"line": 2, "column": 2}],
                "path": ["dataset"],
            }
        ],
    }


def to_stream(payload):
    """Serialize a payload into a readable byte stream."""
    return io.BytesIO(json.dumps(payload).encode("utf-8"))


@pytest.fixture
def city_siblings_table():
    return Table(
        dimensions=[
            make_dimension("city", "City", CITIES, count=3),
            make_dimension("siblings", "Number of siblings", SIBLINGS, count=7),
        ],
        values=VALUES,
    )


@pytest.fixture
def config():
    return CantabularConfig(
        host="http://cantabular.host/", ext_api_host="http://cantabular.ext.host"
    )


class RawBody(io.BytesIO):
    """Byte stream standing in for urllib3's raw response."""

    decode_content = False


class DroppedBody(RawBody):
    """Raw response whose connection drops after ``limit`` bytes have been served."""

    def __init__(self, data, limit):
        super().__init__(data[:limit])

    def read(self, size=-1):
        chunk = super().read(size)
        if size != 0 and not chunk:
            raise urllib3.exceptions.ProtocolError(
                "Connection broken: IncompleteRead", ConnectionResetError(104, "reset")
            )
        return chunk

    def readinto(self, buffer):
        chunk = self.read(len(buffer))
        buffer[: len(chunk)] = chunk
        return len(chunk)


def make_response(status_code=200, payload=None, text=None):
    """A canned requests.Response stand-in."""
    response = MagicMock()
    response.status_code = status_code
    if text is None:
        text = "" if payload is None else json.dumps(payload)
    response.text = text
    response.content = text.encode("utf-8")
    response.raw = RawBody(response.content)
    return response


@pytest.fixture
def mock_session():
    return MagicMock()


@pytest.fixture
def client(config, mock_session):
    return CantabularClient(config=config, session=mock_session)


def dropped_static_dataset_body(values_bytes=30):
    """A static dataset body cut off ``values_bytes`` into the values array."""
    data = json.dumps(static_dataset_body()).encode("utf-8")
    start = data.index(b'"values": ') + len(b'"values": ')
    return DroppedBody(data, start + values_bytes)
