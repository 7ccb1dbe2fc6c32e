"""Tests for the subcommand dispatcher and the two CLIs."""

import pytest

from momentreel.models import Cancelled, Completed, Failed


class TestMainDispatcher:
    def test_no_subcommand_shows_help(self, capsys):
        from momentreel.main import main

        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code != 0
        assert "images" in capsys.readouterr().out

    def test_images_subcommand_exists(self):
        from momentreel.main import main

        with pytest.raises(SystemExit):
            main(["images"])  # missing --export, but subcommand recognized

    def test_video_subcommand_exists(self):
        from momentreel.main import main

        with pytest.raises(SystemExit):
            main(["video"])

    def test_invalid_subcommand_errors(self):
        from momentreel.main import main

        with pytest.raises(SystemExit) as exc_info:
            main(["nonexistent"])
        assert exc_info.value.code != 0


class TestImagesCli:
    def test_validate(self, export_dir, capsys):
        from momentreel.main import main

        main(["images", "--export", str(export_dir), "--validate"])
        out = capsys.readouterr().out
        assert "Export valid: alex" in out
        assert "image pairs:  5" in out

    def test_output_required(self, export_dir):
        from momentreel.cli import main

        with pytest.raises(SystemExit) as exc_info:
            main(["--export", str(export_dir)])
        assert exc_info.value.code == 2

    def test_export(self, export_dir, tmp_path, capsys):
        from momentreel.cli import main

        out = tmp_path / "out"
        main([
            "--export", str(export_dir), "--output", str(out),
            "--style", "separate", "--layout", "flat", "--no-vision",
            "--no-conversations",
        ])
        assert "Export finished: 5 item(s)." in capsys.readouterr().out
        assert (out / "export_post_2024-01-15_093000_back.jpg").exists()
        assert not (out / "export_post_2024-01-15_093000_combined_back.jpg").exists()
        assert not (out / "Conversations").exists()

    def test_config_file_with_cli_override(self, export_dir, tmp_path):
        from momentreel.cli import main

        config = tmp_path / "options.yaml"
        config.write_text("images:\n  style: combined\n  folder_layout: flat\n  corner: all\n")
        out = tmp_path / "out"
        main([
            "--export", str(export_dir), "--output", str(out), "--config", str(config),
            "--corner", "bottom-right", "--no-vision",
        ])
        assert (out / "export_memory_2024-02-01_120000_combined_front.jpg").exists()
        assert not (out / "export_memory_2024-02-01_120000_back.jpg").exists()

    def test_bad_corner(self, export_dir, tmp_path):
        from momentreel.cli import main

        with pytest.raises(SystemExit) as exc_info:
            main(["--export", str(export_dir), "--output", str(tmp_path), "--corner", "middle"])
        assert exc_info.value.code == 2

    def test_bad_export_path(self, tmp_path, capsys):
        from momentreel.cli import main

        with pytest.raises(SystemExit) as exc_info:
            main(["--export", str(tmp_path / "missing"), "--output", str(tmp_path / "out")])
        assert exc_info.value.code == 1
        assert "not valid" in capsys.readouterr().err


class TestVideoCli:
    def test_validate_counts_frames(self, export_dir, capsys):
        from momentreel.video_cli import main

        main([
            "--export", str(export_dir), "--validate",
            "--start", "2024-01-10", "--end", "2024-02-01",
        ])
        assert "frames:       2" in capsys.readouterr().out

    def test_all_corners_rejected(self, export_dir, tmp_path):
        from momentreel.video_cli import main

        with pytest.raises(SystemExit) as exc_info:
            main(["--export", str(export_dir), "--output", str(tmp_path / "v.mp4"), "--corner", "all"])
        assert exc_info.value.code == 2

    def test_render(self, export_dir, tmp_path, capsys):
        from momentreel.video_cli import main

        out = tmp_path / "v.mp4"
        main([
            "--export", str(export_dir), "--output", str(out),
            "--content", "back_only", "--fps", "4", "--no-vision",
        ])
        assert "Export finished: 3 item(s)." in capsys.readouterr().out
        assert out.exists()

    def test_empty_range_exits_failed(self, export_dir, tmp_path, capsys):
        from momentreel.video_cli import main

        with pytest.raises(SystemExit) as exc_info:
            main([
                "--export", str(export_dir), "--output", str(tmp_path / "v.mp4"),
                "--start", "2030-01-01",
            ])
        assert exc_info.value.code == 1
        assert "No images found" in capsys.readouterr().out


class TestReport:
    def test_completed_returns(self, capsys):
        from momentreel.cli import report

        report(Completed(3))
        assert "3 item(s)" in capsys.readouterr().out

    @pytest.mark.parametrize("result,code", [
        (Cancelled(2), 130),
        (Failed("disk full", 1), 1),
    ])
    def test_exit_codes(self, result, code):
        from momentreel.cli import report

        with pytest.raises(SystemExit) as exc_info:
            report(result)
        assert exc_info.value.code == code


class TestRunUntilDone:
    def test_returns_failed_for_unexpected_error(self):
        from momentreel.cli import run_until_done
        from momentreel.exporter import ExportSession

        async def job(token, emit):
            raise KeyError("missing field")

        result = run_until_done(ExportSession(job))
        assert isinstance(result, Failed)
