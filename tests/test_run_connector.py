import pytest

from config import Settings
from scripts import run_connector
from zoom_connector.models.schemas import RunReport


class _StubOrchestrator:
    def __init__(self, report: RunReport) -> None:
        self.report = report
        self.days = "unset"

    def run(self, days=None) -> RunReport:
        self.days = days
        return self.report


@pytest.fixture
def wire(monkeypatch: pytest.MonkeyPatch, tmp_path):
    built = {}

    def load_settings():
        return Settings(zoom_account_id="acct", zoom_client_id="cid", zoom_client_secret="secret",
                        default_folder_id="F0", log_dir=str(tmp_path / "logs"))

    def install(report: RunReport) -> dict:
        def build_orchestrator(settings, dry_run=False):
            built["settings"] = settings
            built["dry_run"] = dry_run
            built["orchestrator"] = _StubOrchestrator(report)
            return built["orchestrator"]

        monkeypatch.setattr(run_connector, "load_settings", load_settings)
        monkeypatch.setattr(run_connector, "build_orchestrator", build_orchestrator)
        return built

    return install


def test_parse_args() -> None:
    args = run_connector.parse_args(["--days", "7", "--dry-run", "--no-delete"])

    assert args.days == 7
    assert args.dry_run is True
    assert args.no_delete is True


def test_reset_credentials_flag_is_not_accepted() -> None:
    with pytest.raises(SystemExit):
        run_connector.parse_args(["--reset-credentials"])


def test_main_passes_flags_to_orchestrator(wire) -> None:
    built = wire(RunReport())

    assert run_connector.main(["--days", "3", "--dry-run", "--no-delete"]) == 0
    assert built["dry_run"] is True
    assert built["settings"].delete_after_transfer is False
    assert built["orchestrator"].days == 3


def test_aborted_run_exits_with_1(wire) -> None:
    wire(RunReport(aborted=True, error="Failed to get Zoom token (401)"))

    assert run_connector.main([]) == 1


def test_invalid_days_exits_with_2(wire) -> None:
    built = wire(RunReport())

    assert run_connector.main(["--days", "0"]) == 2
    assert "orchestrator" not in built
