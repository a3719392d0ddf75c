#!/usr/bin/env python3
"""
测试命令行入口
"""

import json
import pytest
import go_i18n_transform
from helper import I18N_IMPORT_PATH

SOURCE = '''package test
func main() {
	s := "你好，世界"
}'''


def test_main_with_args(tmp_path, capsys):
    input_file = tmp_path / "input.go"
    input_file.write_text(SOURCE, encoding="utf-8")
    output_file = tmp_path / "output.go"

    assert go_i18n_transform.main([str(input_file), str(output_file)]) == 0

    content = output_file.read_text(encoding="utf-8")
    assert "i18n.Localizer.MustLocalize" in content
    assert content.count(f'"{I18N_IMPORT_PATH}"') == 1
    assert 'Other: "你好，世界"' in content
    out = capsys.readouterr().out
    assert "找到以下中文字符串:" in out
    assert "1. 你好，世界" in out
    # 不留下临时文件
    assert sorted(p.name for p in tmp_path.iterdir()) == ["input.go", "output.go"]


def test_wrong_arity_does_nothing(tmp_path, capsys):
    input_file = tmp_path / "input.go"
    input_file.write_text(SOURCE, encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        go_i18n_transform.main([str(input_file)])
    assert exc.value.code != 0
    assert "usage: transform <input.go> <output.go>" in capsys.readouterr().err
    assert [p.name for p in tmp_path.iterdir()] == ["input.go"]


def test_english_only_file_is_copied_unchanged(tmp_path, capsys):
    source = 'package main\n\nfunc main() {\n\ts := "Hello World"\n}\n'
    input_file = tmp_path / "input.go"
    input_file.write_text(source, encoding="utf-8")
    output_file = tmp_path / "output.go"

    assert go_i18n_transform.main([str(input_file), str(output_file)]) == 0
    assert output_file.read_text(encoding="utf-8") == source
    assert "未找到中文字符串" in capsys.readouterr().out


def test_malformed_input_writes_nothing(tmp_path):
    input_file = tmp_path / "input.go"
    input_file.write_text('package main\nfunc main( {\n\ts := "你好"\n', encoding="utf-8")
    output_file = tmp_path / "output.go"

    assert go_i18n_transform.main([str(input_file), str(output_file)]) == 1
    assert not output_file.exists()


def test_missing_input_file(tmp_path):
    assert go_i18n_transform.main([str(tmp_path / "nope.go"), str(tmp_path / "out.go")]) == 1


def test_catalog_and_translation(tmp_path, monkeypatch):
    created = {}

    class FakeService:
        def __init__(self, api_key, base_url="", model_name="", target_language="en", **kwargs):
            created.update(api_key=api_key, target_language=target_language, model_name=model_name)

        def translate_messages(self, messages):
            return {m.id: "Hello, world" for m in messages}

    monkeypatch.setattr(go_i18n_transform, "TranslationService", FakeService)
    input_file = tmp_path / "input.go"
    input_file.write_text(SOURCE, encoding="utf-8")
    catalog_dir = tmp_path / "locales"

    code = go_i18n_transform.main([
        str(input_file), str(tmp_path / "output.go"),
        "--catalog-dir", str(catalog_dir),
        "--translate-to", "en",
        "--api-key", "sk-test",
    ])

    assert code == 0
    assert created == {"api_key": "sk-test", "target_language": "en", "model_name": "gpt-4o-mini"}
    zh = json.loads((catalog_dir / "active.zh.json").read_text(encoding="utf-8"))
    en = json.loads((catalog_dir / "active.en.json").read_text(encoding="utf-8"))
    assert zh == {"nhsj": {"other": "你好，世界"}}
    assert en == {"nhsj": {"other": "Hello, world"}}


def test_translation_skipped_without_api_key(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    input_file = tmp_path / "input.go"
    input_file.write_text(SOURCE, encoding="utf-8")
    catalog_dir = tmp_path / "locales"

    code = go_i18n_transform.main([
        str(input_file), str(tmp_path / "output.go"),
        "--catalog-dir", str(catalog_dir), "--translate-to", "en", "--api-key", "",
    ])

    assert code == 0
    assert (catalog_dir / "active.zh.json").exists()
    assert not (catalog_dir / "active.en.json").exists()
    assert "跳过翻译" in capsys.readouterr().out


def test_source_is_parsed_once(tmp_path, monkeypatch):
    calls = []

    class CountingParser(go_i18n_transform.GoSourceParser):
        def parse(self, source):
            calls.append(source)
            return super().parse(source)

    monkeypatch.setattr(go_i18n_transform, "GoSourceParser", CountingParser)
    input_file = tmp_path / "input.go"
    input_file.write_text(SOURCE, encoding="utf-8")

    assert go_i18n_transform.main([str(input_file), str(tmp_path / "output.go")]) == 0
    assert len(calls) == 1


def test_translate_requires_catalog_dir(tmp_path, capsys):
    input_file = tmp_path / "input.go"
    input_file.write_text(SOURCE, encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        go_i18n_transform.main([str(input_file), str(tmp_path / "output.go"), "--translate-to", "en"])
    assert exc.value.code == 2
    assert "--catalog-dir" in capsys.readouterr().err
    assert [p.name for p in tmp_path.iterdir()] == ["input.go"]
