import pytest
from pydantic import ValidationError

from gindex.config import MB, load_config


def test_defaults():
    cfg = load_config({})
    assert cfg.text_max == 10 * MB
    assert cfg.pdf_max == 100 * MB
    assert cfg.timeout == 60
    assert cfg.port == 8099
    assert cfg.workers == 1


def test_values_are_read():
    cfg = load_config({
        "GINDEX_REPOSITORY_STORE": "/srv/gin",
        "GINDEX_TEXT_MAX": "2",
        "GINDEX_PDF_MAX": "5",
        "GINDEX_TIMEOUT": "30",
        "GINDEX_PORT": "9000",
        "GIN_URL": "https://gin.example.org/",
        "EMBEDDING_MODEL": "text-embedding-3-large",
    })
    assert cfg.repository_store == "/srv/gin"
    assert cfg.text_max == 2 * MB
    assert cfg.pdf_max == 5 * MB
    assert cfg.timeout == 30
    assert cfg.port == 9000
    assert cfg.gin_url == "https://gin.example.org"
    assert cfg.embedding_model == "text-embedding-3-large"


def test_unparseable_values_fall_back_to_defaults():
    cfg = load_config({
        "GINDEX_TEXT_MAX": "ten",
        "GINDEX_TIMEOUT": "-5",
        "GINDEX_PORT": "99999",
        "EMBEDDING_MODEL": "nope",
    })
    assert cfg.text_max == 10 * MB
    assert cfg.timeout == 60
    assert cfg.port == 8099
    assert cfg.embedding_model == "text-embedding-3-small"


def test_config_is_immutable():
    cfg = load_config({})
    with pytest.raises(ValidationError):
        cfg.timeout = 1
