from schedulers import scheduler
from services.kite_sync import SyncReport


def test_post_close_job_registered():
    job = scheduler.scheduler.get_job("post_close_snapshot_sync")
    assert job is not None
    assert "hour='15'" in str(job.trigger)


def test_sync_all_snapshots_runs_every_account(mocker):
    service = mocker.Mock()
    service.sync_all_accounts.return_value = SyncReport(synced=["self"], reauth_required=["mom"])
    mocker.patch.object(scheduler, "get_sync_service", return_value=service)

    scheduler.sync_all_snapshots()

    service.sync_all_accounts.assert_called_once_with()


def test_safe_job_runner_contains_failures(mocker):
    job = mocker.Mock(side_effect=RuntimeError("boom"))
    scheduler.safe_job_runner(job, "flaky")
    job.assert_called_once_with()
