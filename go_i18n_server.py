#!/usr/bin/env python3
from dataclasses import asdict
from flask import Flask, request, jsonify
from helper import (
    I18N_IMPORT_PATH, GoSourceParser, MalformedInputError, MessageRecord, TransformError,
    TranslationService, collect_chinese_strings, transform_source,
)

# Flask Web应用
app = Flask(__name__)


@app.route('/api/extract', methods=['POST'])
def extract_strings():
    """提取中文字符串API"""
    data = request.get_json(silent=True) or {}
    source = data.get('source', '')

    if not source:
        return jsonify({'error': '请提供源码'}), 400

    try:
        strings = collect_chinese_strings(GoSourceParser().parse(source))
        return jsonify({
            'success': True,
            'count': len(strings),
            'strings': strings
        })
    except MalformedInputError as e:
        return jsonify({'error': f'解析失败: {str(e)}'}), 400


@app.route('/api/transform', methods=['POST'])
def transform():
    """改写源码API"""
    data = request.get_json(silent=True) or {}
    source = data.get('source', '')
    import_path = data.get('import_path') or I18N_IMPORT_PATH

    if not source:
        return jsonify({'error': '请提供源码'}), 400

    try:
        result = transform_source(source, import_path=import_path)
    except MalformedInputError as e:
        return jsonify({'error': f'解析失败: {str(e)}'}), 400
    except TransformError as e:
        return jsonify({'error': f'改写失败: {str(e)}'}), 500

    return jsonify({
        'success': True,
        'changed': result.changed,
        'output': result.output,
        'messages': [asdict(m) for m in result.messages]
    })


@app.route('/api/translate', methods=['POST'])
def translate_messages():
    """翻译消息API"""
    data = request.get_json(silent=True) or {}
    api_key = data.get('api_key', '')
    base_url = data.get('base_url', '')
    model_name = data.get('model_name', 'gpt-4o-mini')
    custom_prompt = data.get('custom_prompt', '')
    target_language = data.get('target_language', 'en')

    if not api_key:
        return jsonify({'error': '请提供API Key'}), 400

    messages = [
        MessageRecord(id=str(m.get('id', '')), default_message=str(m.get('default_message', '')))
        for m in data.get('messages', []) if isinstance(m, dict) and m.get('id')
    ]
    if not messages:
        return jsonify({'error': '没有要翻译的消息'}), 400

    service = TranslationService(
        api_key,
        base_url,
        model_name=model_name,
        custom_prompt=custom_prompt,
        target_language=target_language
    )
    translations = service.translate_messages(messages)
    if not translations:
        return jsonify({'error': '翻译失败：未获得翻译结果'}), 500

    return jsonify({'success': True, 'translations': translations})


if __name__ == '__main__':
    print("启动 Go 中文字符串国际化工具...")
    print("接口地址: http://localhost:5000/api/transform")
    app.run(debug=True, port=5000)
