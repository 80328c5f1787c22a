"""Tests for PCCConfig."""
import pytest


class TestPCCConfig:

    def test_defaults(self, monkeypatch):
        from pccstream.config import PCCConfig
        from pccstream.ingest import DEFAULT_CHUNK_ROWS
        monkeypatch.delenv('PCC_WORKERS', raising=False)
        cfg = PCCConfig().validate()
        assert cfg.dtype == 'float64'
        assert cfg.chunk_rows == DEFAULT_CHUNK_ROWS
        assert cfg.workers == 1
        assert cfg.tree == 'balanced'
        assert cfg.columns is None

    def test_workers_from_env(self, monkeypatch):
        from pccstream.config import PCCConfig
        monkeypatch.setenv('PCC_WORKERS', '6')
        assert PCCConfig().workers == 6
        assert PCCConfig(workers=2).workers == 2

    def test_bad_env(self, monkeypatch):
        from pccstream.config import PCCConfig
        monkeypatch.setenv('PCC_WORKERS', 'many')
        with pytest.raises(ValueError, match="PCC_WORKERS"):
            PCCConfig()

    def test_from_yaml(self, tmp_path):
        from pccstream.config import PCCConfig
        path = tmp_path / 'pcc.yaml'
        path.write_text(
            "dtype: float32\n"
            "chunk_rows: 500\n"
            "workers: 3\n"
            "tree: linear\n"
            "columns: [a, b, c]\n"
        )
        cfg = PCCConfig.from_yaml(path)
        assert cfg.dtype == 'float32'
        assert cfg.chunk_rows == 500
        assert cfg.workers == 3
        assert cfg.tree == 'linear'
        assert cfg.columns == ['a', 'b', 'c']

    def test_empty_yaml(self, tmp_path, monkeypatch):
        from pccstream.config import PCCConfig
        monkeypatch.delenv('PCC_WORKERS', raising=False)
        path = tmp_path / 'pcc.yaml'
        path.write_text("")
        assert PCCConfig.from_yaml(path) == PCCConfig()

    def test_yaml_not_a_mapping(self, tmp_path):
        from pccstream.config import PCCConfig
        path = tmp_path / 'pcc.yaml'
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            PCCConfig.from_yaml(path)

    def test_unknown_key(self):
        from pccstream.config import PCCConfig
        with pytest.raises(ValueError, match="chunk_size"):
            PCCConfig.from_dict({'chunk_size': 10})

    @pytest.mark.parametrize("data", [
        {'chunk_rows': 0},
        {'workers': 0},
        {'tree': 'random'},
        {'columns': ['only']},
    ])
    def test_invalid_values(self, data):
        from pccstream.config import PCCConfig
        with pytest.raises(ValueError):
            PCCConfig.from_dict(data)

    def test_non_float_dtype(self):
        from pccstream.config import PCCConfig
        with pytest.raises(TypeError):
            PCCConfig.from_dict({'dtype': 'int32'})

    def test_overrides(self):
        from pccstream.config import PCCConfig
        cfg = PCCConfig(chunk_rows=10, workers=2)
        out = cfg.with_overrides(chunk_rows=None, workers=4, tree='linear')
        assert out.chunk_rows == 10
        assert out.workers == 4
        assert out.tree == 'linear'
        assert cfg.workers == 2
