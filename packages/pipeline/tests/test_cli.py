"""CLI 入口测试"""

import json

from autoops.pipeline.__main__ import main

from pipeline_helpers import CICD_CONTEXT, CICD_GOAL


class TestCli:
    def test_successful_run(self, capsys):
        code = main([CICD_GOAL, "--context", CICD_CONTEXT])
        out = capsys.readouterr().out
        assert code == 0
        assert "Status:  completed" in out
        assert "Summary: 6 completed, 0 failed, 0 skipped" in out

    def test_blocked_run_exit_code(self, capsys):
        code = main(["delete all production data"])
        out = capsys.readouterr().out
        assert code == 1
        assert "[safety_blocked]" in out

    def test_json_output(self, capsys):
        code = main(["What is a deployment pipeline?", "--json"])
        payload = json.loads(capsys.readouterr().out)
        assert code == 0
        assert payload["status"] == "completed"
        assert payload["intent"]["intent_type"] == "INFORMATION_QUERY"

    def test_skip_execution(self, capsys):
        code = main([CICD_GOAL, "--context", CICD_CONTEXT, "--skip-execution"])
        out = capsys.readouterr().out
        assert code == 0
        assert "[pending]" in out

    def test_proceed_flag(self, capsys):
        code = main(["Make it better", "--proceed"])
        assert code == 0
        assert "clarification_required" not in capsys.readouterr().out
