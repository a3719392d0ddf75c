#!/usr/bin/env python3
"""
命令行入口：transform <input.go> <output.go>
"""

import argparse
import os
import sys
import tempfile
from pathlib import Path
from typing import List, Optional
from helper import (
    I18N_IMPORT_PATH, GoSourceParser, MessageCatalog, TransformError, TranslationService,
    collect_chinese_strings, transform_unit,
)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transform",
        usage="transform <input.go> <output.go> [options]",
        description="把 Go 文件中的中文字符串替换为 go-i18n 调用",
    )
    parser.add_argument("input", help="输入的 Go 源文件")
    parser.add_argument("output", help="输出文件")
    parser.add_argument("--import-path", default=I18N_IMPORT_PATH, help="go-i18n 的导入路径")
    parser.add_argument("--catalog-dir", help="写入 go-i18n 消息文件的目录（active.zh.json）")
    parser.add_argument("--translate-to", help="翻译目标语言，如 en；需要配合 --catalog-dir")
    parser.add_argument("--api-key", default=os.environ.get("OPENAI_API_KEY", ""), help="OpenAI API Key")
    parser.add_argument("--base-url", default="", help="OpenAI 兼容接口地址")
    parser.add_argument("--model", default="gpt-4o-mini", help="翻译使用的模型")
    return parser


def print_chinese_strings(strings: List[str]) -> None:
    if strings:
        print("找到以下中文字符串:")
        for i, s in enumerate(strings, 1):
            print(f"{i}. {s}")
    else:
        print("未找到中文字符串")


def write_atomically(output_path: Path, content: str) -> None:
    """先写临时文件，成功后再替换目标文件"""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
            f.write(content)
        os.replace(tmp_name, output_path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    if args.translate_to and not args.catalog_dir:
        parser.error("--translate-to 需要配合 --catalog-dir 使用")
    input_path = Path(args.input)
    output_path = Path(args.output)

    try:
        source = input_path.read_bytes()
    except OSError as e:
        print(f"[错误] 读取文件失败: {e}")
        return 1

    try:
        print(f"正在分析文件: {input_path}")
        unit = GoSourceParser().parse(source)
        print_chinese_strings(collect_chinese_strings(unit))

        result = transform_unit(unit, import_path=args.import_path)
    except TransformError as e:
        print(f"[错误] 解析文件失败: {e}")
        return 1

    write_atomically(output_path, result.output)
    print(f"[输出] 已写入 {output_path}")

    if args.catalog_dir and result.messages:
        catalog = MessageCatalog(result.messages)
        catalog_dir = Path(args.catalog_dir)
        catalog.write(catalog_dir / "active.zh.json")

        if args.translate_to:
            if not args.api_key:
                print("[翻译] 未提供 API Key，跳过翻译")
            else:
                service = TranslationService(
                    args.api_key, args.base_url,
                    model_name=args.model,
                    target_language=args.translate_to,
                )
                translations = service.translate_messages(catalog.records)
                if translations:
                    catalog.write(catalog_dir / f"active.{args.translate_to}.json", translations)
    return 0


if __name__ == "__main__":
    sys.exit(main())
