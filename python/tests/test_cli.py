"""
Tests for the aml-screen command line
"""

import json
from pathlib import Path

import pytest

from aml_screening.cli import EXIT_BLOCKLIST_UNAVAILABLE, build_parser, main

SAMPLE_BLOCKLIST = str(Path(__file__).parent.parent / "sample_data" / "blocklist.yaml")


@pytest.fixture
def config_path(make_config_file):
    return str(make_config_file())


class TestCheckCommand:
    """aml-screen check"""

    def test_check_names(self, config_path, capsys):
        code = main(["--config", config_path, "--blocklist", SAMPLE_BLOCKLIST,
                     "check", "JOHN SMITH", "Jon Smyth", ""])

        assert code == 0
        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert lines[0] == {
            'senderName': 'JOHN SMITH',
            'isBlocked': True,
            'blockReason': 'sanctioned-match',
            'similarityScore': 1.0,
            'matchedEntity': 'E1',
        }
        assert lines[1]['isBlocked'] is False
        assert lines[1]['similarityScore'] == 0.32
        assert lines[2]['blockReason'] == 'invalid-input'

    def test_blocklist_path_from_config(self, make_config_file, capsys):
        path = make_config_file(blocklist={'path': SAMPLE_BLOCKLIST})

        assert main(["--config", str(path), "check", "Acme Trade Co"]) == 0
        assert json.loads(capsys.readouterr().out)['matchedEntity'] == 'E2'

    def test_no_blocklist(self, config_path):
        assert main(["--config", config_path, "check", "John Smith"]) == EXIT_BLOCKLIST_UNAVAILABLE

    def test_unreadable_blocklist(self, config_path, tmp_path):
        code = main(["--config", config_path, "--blocklist", str(tmp_path / "missing.yaml"),
                     "check", "John Smith"])
        assert code == EXIT_BLOCKLIST_UNAVAILABLE

    def test_bad_config(self, tmp_path):
        assert main(["--config", str(tmp_path / "missing.yaml"), "check", "John Smith"]) == 1

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestBulkCommand:
    """aml-screen bulk"""

    def test_bulk_csv(self, config_path, tmp_path, capsys):
        payments = tmp_path / "payments.csv"
        payments.write_text(
            "payment_id,sender_name\n"
            "P1,John Smith\n"
            "P2,Xavier Quinn\n"
            "P3,Maria Garcia\n"
            "P4,\n",
            encoding='utf-8'
        )

        code = main(["--config", config_path, "--blocklist", SAMPLE_BLOCKLIST,
                     "bulk", str(payments), "--workers", "2"])

        assert code == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary['screening_info']['total_screened'] == 4
        assert summary['screening_info']['total_blocked'] == 2
        assert summary['screening_info']['generation'] == 1
        assert [r['senderName'] for r in summary['results']] == [
            'John Smith', 'Xavier Quinn', 'Maria Garcia', ''
        ]
        assert summary['results'][2]['blockReason'] == 'pep-match'
        assert summary['results'][3]['blockReason'] == 'invalid-input'
        assert summary['stats']['totalChecks'] == 4

    def test_custom_column(self, config_path, tmp_path, capsys):
        payments = tmp_path / "payments.csv"
        payments.write_text("name\nAcme Holdings\n", encoding='utf-8')

        code = main(["--config", config_path, "--blocklist", SAMPLE_BLOCKLIST,
                     "bulk", str(payments), "--column", "name"])

        assert code == 0
        assert json.loads(capsys.readouterr().out)['results'][0]['matchedEntity'] == 'E2'

    def test_missing_column(self, config_path, tmp_path):
        payments = tmp_path / "payments.csv"
        payments.write_text("name\nJohn Smith\n", encoding='utf-8')

        assert main(["--config", config_path, "--blocklist", SAMPLE_BLOCKLIST,
                     "bulk", str(payments)]) == 1
