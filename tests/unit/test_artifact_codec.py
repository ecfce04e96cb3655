import pytest

from src.domain.entities.artifact import ImageArtifact
from src.domain.errors import MalformedPayload
from src.domain.services.artifact_codec import bytes_to_data_url, to_artifact, to_data_url


def test_to_artifact_decodes_mime_and_bytes():
    art = to_artifact("data:image/png;base64,aGVsbG8=", "edited-1.png")
    assert art.name == "edited-1.png"
    assert art.mime_type == "image/png"
    assert art.data == b"hello"
    assert art.size == 5


def test_encoding_preserves_payload():
    original = ImageArtifact(name="x.jpeg", mime_type="image/jpeg", data=bytes(range(256)))
    back = to_artifact(to_data_url(original), original.name)
    assert back == original
    assert bytes_to_data_url(original.data, "image/jpeg") == to_data_url(original)


@pytest.mark.parametrize(
    "payload",
    [
        "no-comma-here",
        "data:;base64,aGVsbG8=",
        "image/png,aGVsbG8=",
        "data:image/png;base64,@@not-base64@@",
        "data:image/png;base64,@@@@",
        "data:image/png;base64,aGVsbG8=!!",
    ],
)
def test_malformed_payloads_raise(payload):
    with pytest.raises(MalformedPayload):
        to_artifact(payload, "x.png")
