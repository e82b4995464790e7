"""Entrypoint wiring: collaborators built from settings, startup failures."""

import pytest

import ratepoll.main as main_mod
from ratepoll.config import Config, CycleSettings
from tests.fakes import FakeFetcher


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in Config.env_mappings:
        monkeypatch.delenv(name, raising=False)


@pytest.mark.asyncio
@pytest.mark.timing
async def test_run_drives_bounded_cycles_and_closes_fetcher(monkeypatch):
    built = {}

    def fake_fetcher(url, **kwargs):
        built["url"] = url
        built["kwargs"] = kwargs
        built["fetcher"] = FakeFetcher()
        return built["fetcher"]

    monkeypatch.setattr(main_mod, "HTTPFetcher", fake_fetcher)
    settings = CycleSettings(cadence=0.05, batch_size=2, target_resource="http://localhost/rates")

    await main_mod.run(settings, max_cycles=2)

    fetcher = built["fetcher"]
    assert built["url"] == "http://localhost/rates"
    assert built["kwargs"]["timeout"] is None
    assert fetcher.perform_calls == 4
    assert fetcher.closed is True


def test_main_exits_on_invalid_settings(monkeypatch):
    monkeypatch.setenv("RATEPOLL_BATCH_SIZE", "0")
    monkeypatch.setattr(main_mod, "setup_logging", lambda config: None)

    with pytest.raises(SystemExit) as exc:
        main_mod.main()

    assert exc.value.code == 1


def test_main_logs_keyboard_interrupt(monkeypatch):
    monkeypatch.setattr(main_mod, "setup_logging", lambda config: None)

    def interrupted(coro):
        coro.close()
        raise KeyboardInterrupt

    monkeypatch.setattr(main_mod.asyncio, "run", interrupted)

    main_mod.main()
