import pytest

from querygen.config import QuerygenConfig, load_config


def test_defaults():
    cfg = QuerygenConfig()
    assert cfg.log_level == "info"
    assert cfg.type_suffix == "Params"
    assert cfg.runtime_package == "querygen"
    assert cfg.runtime_name == "interpolate"


def test_load_yaml(tmp_path):
    p = tmp_path / "querygen.yaml"
    p.write_text("log_level: DEBUG\nworkers: 2\ntype_suffix: Vars\n", encoding="utf-8")
    cfg = load_config(p)
    assert cfg.log_level == "debug"
    assert cfg.workers == 2
    assert cfg.type_suffix == "Vars"


def test_empty_file_gives_defaults(tmp_path):
    p = tmp_path / "querygen.yaml"
    p.write_text("", encoding="utf-8")
    assert load_config(p) == QuerygenConfig()


def test_non_mapping_rejected(tmp_path):
    p = tmp_path / "querygen.yaml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError, match="must be a YAML mapping"):
        load_config(p)


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"log_level": "loud"}, "log_level must be one of"),
        ({"workers": 0}, "workers must be >= 1"),
        ({"type_suffix": "not valid"}, "type_suffix must be a valid identifier"),
        ({"runtime_module": "interpolate"}, "dotted module path"),
    ],
)
def test_invalid_values(overrides, message):
    with pytest.raises(ValueError, match=message):
        QuerygenConfig(**overrides)


def test_with_overrides():
    cfg = QuerygenConfig().with_overrides(log_level="warning", workers=3)
    assert (cfg.log_level, cfg.workers) == ("warning", 3)
    assert QuerygenConfig().with_overrides() == QuerygenConfig()
