from pathlib import Path

import pytest

from batch_mcp import MATLAB_PROFILE, StagingFailed
from batch_mcp.execution.staging import stage_code


def test_stage_code_writes_exact_text(tmp_path: Path) -> None:
    code = "x = 1:5;\r\ndisp(sum(x.^2)) % ünïcode\n"
    unit = stage_code(code, profile=MATLAB_PROFILE, root=tmp_path)

    assert unit.path.read_bytes() == code.encode("utf-8")
    assert unit.path.parent == unit.workdir
    assert unit.workdir.parent == tmp_path
    unit.release()


def test_stage_code_accepts_empty_code(tmp_path: Path) -> None:
    with stage_code("", profile=MATLAB_PROFILE, root=tmp_path) as unit:
        assert unit.path.read_text(encoding="utf-8") == ""


def test_unit_name_is_addressable_by_matlab(tmp_path: Path) -> None:
    with stage_code("disp(1)", profile=MATLAB_PROFILE, root=tmp_path) as unit:
        assert unit.path.suffix == ".m"
        assert unit.name == unit.path.stem
        assert unit.name[0].isalpha()
        assert unit.name.isidentifier()
        assert len(unit.name) <= 63


def test_unit_names_and_workdirs_are_unique(tmp_path: Path) -> None:
    units = [stage_code("disp(1)", profile=MATLAB_PROFILE, root=tmp_path) for _ in range(50)]
    try:
        assert len({unit.name for unit in units}) == 50
        assert len({unit.workdir for unit in units}) == 50
    finally:
        for unit in units:
            unit.release()


def test_release_removes_workdir_and_is_idempotent(tmp_path: Path) -> None:
    unit = stage_code("disp(1)", profile=MATLAB_PROFILE, root=tmp_path)
    unit.release()
    assert not unit.workdir.exists()
    assert unit.released is True
    unit.release()


def test_context_manager_releases_on_error(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError):
        with stage_code("disp(1)", profile=MATLAB_PROFILE, root=tmp_path) as unit:
            raise RuntimeError("boom")
    assert not unit.workdir.exists()


def test_missing_root_raises_staging_failed(tmp_path: Path) -> None:
    with pytest.raises(StagingFailed) as exc:
        stage_code("disp(1)", profile=MATLAB_PROFILE, root=tmp_path / "missing")
    assert exc.value.reason


def test_unencodable_code_cleans_up_partial_workdir(tmp_path: Path) -> None:
    with pytest.raises(StagingFailed):
        stage_code("disp('\ud800')", profile=MATLAB_PROFILE, root=tmp_path)
    assert list(tmp_path.iterdir()) == []
