"""
Go 源码中文字符串国际化改写工具
将 Go 文件中的中文字符串字面量替换为 go-i18n 调用
"""

import re
import json
from enum import Enum
from pathlib import Path
from typing import List, Dict, Optional, Tuple, Union
from dataclasses import dataclass, field
import openai
import tree_sitter_go
from tree_sitter import Language, Parser, Node, Tree
from pypinyin import pinyin, Style
from traceback import print_exc
from httpx import Timeout

# go-i18n 依赖
I18N_IMPORT_PATH = "github.com/nicksnyder/go-i18n/v2/i18n"
I18N_PACKAGE = "i18n"

# 消息 ID 最多取几个字符，以及兜底 ID
MAX_ID_CHARS = 5
FALLBACK_ID = "msg"

# 汉字（含扩展区和兼容区）
HAN_RE = re.compile(
    r"[\u2e80-\u2fdf\u3005\u3007\u3021-\u3029\u3038-\u303b"
    r"\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff\U00020000-\U0003134f]"
)
ASCII_ALNUM_RE = re.compile(r"[a-zA-Z0-9]")
STRING_DELIMITERS = '"`'

GO_LANGUAGE = Language(tree_sitter_go.language())
STRING_LITERAL_TYPES = ("interpreted_string_literal", "raw_string_literal")
# 复合字面量中包裹元素的节点（新旧 grammar 命名不同）
COMPOSITE_ELEMENT_TYPES = ("literal_element", "element")


class TransformError(Exception):
    """改写流程中的致命错误"""


class MalformedInputError(TransformError):
    """源码无法解析"""


class SerializationError(TransformError):
    """改写后的源码无法输出"""


def contains_chinese(text: str) -> bool:
    """检查文本是否包含中文"""
    return HAN_RE.search(text) is not None


def strip_delimiters(text: str) -> str:
    """去除两端的引号/反引号"""
    return text.strip(STRING_DELIMITERS)


GO_SIMPLE_ESCAPES = {
    "a": "\a", "b": "\b", "f": "\f", "n": "\n", "r": "\r",
    "t": "\t", "v": "\v", "\\": "\\", "'": "'", '"': '"',
}
GO_ESCAPE_RE = re.compile(
    r'\\(?:([abfnrtv\\\'"])|([0-7]{3})|x([0-9a-fA-F]{2})|u([0-9a-fA-F]{4})|U([0-9a-fA-F]{8}))'
)


def decode_go_string(raw: str) -> str:
    """按 Go 的规则解码字符串字面量（含引号），得到运行时的文本

    反引号字符串只去掉两端各一个反引号（以及其中的 \\r）；
    双引号字符串还要处理转义，\\ooo 和 \\xhh 表示字节，按 UTF-8 拼接。
    """
    if len(raw) < 2 or raw[0] != raw[-1] or raw[0] not in STRING_DELIMITERS:
        return strip_delimiters(raw)
    body = raw[1:-1]
    if raw[0] == "`":
        return body.replace("\r", "")

    buf = bytearray()
    pos = 0
    for match in GO_ESCAPE_RE.finditer(body):
        buf += body[pos:match.start()].encode("utf-8")
        simple, octal, hex_byte, short_u, long_u = match.groups()
        if simple:
            buf += GO_SIMPLE_ESCAPES[simple].encode("utf-8")
        elif octal:
            buf.append(int(octal, 8) & 0xFF)
        elif hex_byte:
            buf.append(int(hex_byte, 16))
        else:
            code = int(short_u or long_u, 16)
            buf += (chr(code) if code <= 0x10FFFF else "\ufffd").encode("utf-8", errors="replace")
        pos = match.end()
    buf += body[pos:].encode("utf-8")
    return buf.decode("utf-8", errors="replace")


@dataclass(frozen=True, order=True)
class Position:
    """源码坐标（行、列均从 1 开始，列按字节计）"""
    line: int
    column: int


@dataclass(frozen=True)
class CommentSpan:
    start: Position
    end: Position


class LiteralRole(Enum):
    """字符串字面量在语法树中的位置"""
    FIELD_TAG = "field_tag"
    IMPORT_PATH = "import_path"
    WRAPPED_FALLBACK = "wrapped_fallback"
    CALL_ARGUMENT = "call_argument"
    COMPOSITE_VALUE = "composite_value"
    PLAIN = "plain"


@dataclass
class GoStringLiteral:
    """Go 字符串字面量节点"""
    raw: str  # 含引号的原始文本
    start: Position
    end: Position
    start_byte: int
    end_byte: int
    role: LiteralRole = LiteralRole.PLAIN

    @property
    def text(self) -> str:
        """运行时的文本（已解码转义）"""
        return decode_go_string(self.raw)


@dataclass(frozen=True)
class MessageRecord:
    """一条待翻译消息：ID + 默认文案"""
    id: str
    default_message: str


@dataclass
class LocalizeCall:
    """替换字面量的 i18n.Localizer.MustLocalize 调用"""
    message_id: str
    fallback: GoStringLiteral  # 原字面量本身，不是拷贝

    @property
    def record(self) -> MessageRecord:
        return MessageRecord(id=self.message_id, default_message=self.fallback.text)

    def render(self, package: str = I18N_PACKAGE) -> str:
        quoted_id = f'"{self.message_id}"'
        return (
            f"{package}.Localizer.MustLocalize(&{package}.LocalizeConfig{{"
            f"MessageID: {quoted_id}, "
            f"DefaultMessage: &{package}.Message{{ID: {quoted_id}, Other: {self.fallback.raw}}}}})"
        )


@dataclass
class ImportSpec:
    """import 声明中的一项；新增的项没有字节位置"""
    path: str
    name: Optional[str] = None
    start_byte: Optional[int] = None
    end_byte: Optional[int] = None

    @property
    def is_new(self) -> bool:
        return self.start_byte is None


@dataclass
class GoSourceUnit:
    """一个 Go 源文件的语法树及改写状态"""
    source: bytes
    root: Node
    tree: Optional[Tree] = None
    comments: List[CommentSpan] = field(default_factory=list)
    imports: List[ImportSpec] = field(default_factory=list)
    replacements: List[LocalizeCall] = field(default_factory=list)

    def node_text(self, node: Node) -> str:
        return self.source[node.start_byte:node.end_byte].decode("utf-8")

    def replace(self, literal: GoStringLiteral, call: LocalizeCall):
        """用调用节点替换字面量"""
        if call.fallback is not literal:
            raise ValueError("替换节点必须持有原字面量")
        self.replacements.append(call)

    @property
    def messages(self) -> List[MessageRecord]:
        return [call.record for call in self.replacements]


def _position(point) -> Position:
    return Position(line=point[0] + 1, column=point[1] + 1)


def _same_span(a: Optional[Node], b: Node) -> bool:
    return a is not None and a.start_byte == b.start_byte and a.end_byte == b.end_byte


def _keyed_element_key(element: Node) -> Optional[Node]:
    """取 keyed_element 的 key（兼容新旧两种 grammar）"""
    key = element.child_by_field_name("key")
    if key is None:
        named = element.named_children
        key = named[0] if named else None
    # 新版 grammar 中 key 外面包了一层 literal_element
    if key is not None and key.type == "literal_element" and key.named_children:
        key = key.named_children[0]
    return key


def literal_role(node: Node, source: bytes) -> LiteralRole:
    """根据父节点形状判断字面量所处的位置"""
    parent = node.parent
    if parent is None:
        return LiteralRole.PLAIN

    if parent.type == "field_declaration":
        if _same_span(parent.child_by_field_name("tag"), node):
            return LiteralRole.FIELD_TAG
        return LiteralRole.PLAIN

    if parent.type == "import_spec":
        return LiteralRole.IMPORT_PATH

    element = parent.parent if parent.type in COMPOSITE_ELEMENT_TYPES else parent
    if element is not None and element.type == "keyed_element":
        key = _keyed_element_key(element)
        is_key = key is not None and key.start_byte <= node.start_byte and node.end_byte <= key.end_byte
        if key is not None and not is_key and key.type in ("identifier", "field_identifier"):
            if source[key.start_byte:key.end_byte] == b"Other":
                return LiteralRole.WRAPPED_FALLBACK
        return LiteralRole.COMPOSITE_VALUE

    if parent.type in COMPOSITE_ELEMENT_TYPES or parent.type == "literal_value":
        return LiteralRole.COMPOSITE_VALUE
    if parent.type == "argument_list":
        return LiteralRole.CALL_ARGUMENT
    return LiteralRole.PLAIN


def literal_from_node(node: Node, source: bytes) -> GoStringLiteral:
    return GoStringLiteral(
        raw=source[node.start_byte:node.end_byte].decode("utf-8"),
        start=_position(node.start_point),
        end=_position(node.end_point),
        start_byte=node.start_byte,
        end_byte=node.end_byte,
        role=literal_role(node, source),
    )


def iter_string_literals(root: Node, source: bytes):
    """先序遍历，按文档顺序产出字符串字面量"""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type in STRING_LITERAL_TYPES:
            yield literal_from_node(node, source)
            # 字面量内部的 content/escape 子节点不再展开
            continue
        stack.extend(reversed(node.children))


class GoSourceParser:
    """基于 tree-sitter 的 Go 源码解析器"""

    def __init__(self):
        self.parser = Parser(GO_LANGUAGE)

    def parse(self, source: Union[str, bytes]) -> GoSourceUnit:
        if isinstance(source, str):
            source = source.encode("utf-8")
        try:
            source.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedInputError(f"源码不是合法的 UTF-8: {e}") from e

        tree = self.parser.parse(source)
        root = tree.root_node
        if root.has_error:
            bad = _first_error_node(root)
            where = f"第 {bad.start_point[0] + 1} 行" if bad is not None else "未知位置"
            raise MalformedInputError(f"Go 语法错误（{where}）")

        unit = GoSourceUnit(source=source, root=root, tree=tree)
        for child in root.children:
            if child.type == "import_declaration":
                unit.imports.extend(_collect_import_specs(child, source))
        unit.comments = _collect_comments(root)
        return unit


def _first_error_node(node: Node) -> Optional[Node]:
    if node.type == "ERROR" or node.is_missing:
        return node
    for child in node.children:
        if child.has_error or child.is_missing:
            found = _first_error_node(child)
            if found is not None:
                return found
    return None


def _collect_comments(root: Node) -> List[CommentSpan]:
    comments = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "comment":
            comments.append(CommentSpan(_position(node.start_point), _position(node.end_point)))
            continue
        stack.extend(reversed(node.children))
    return comments


def _collect_import_specs(decl: Node, source: bytes) -> List[ImportSpec]:
    specs = []
    stack = [decl]
    while stack:
        node = stack.pop()
        if node.type == "import_spec":
            path_node = node.child_by_field_name("path")
            name_node = node.child_by_field_name("name")
            if path_node is None:
                continue
            specs.append(ImportSpec(
                path=strip_delimiters(source[path_node.start_byte:path_node.end_byte].decode("utf-8")),
                name=source[name_node.start_byte:name_node.end_byte].decode("utf-8") if name_node else None,
                start_byte=node.start_byte,
                end_byte=node.end_byte,
            ))
            continue
        stack.extend(reversed(node.children))
    return specs


class CommentSpanIndex:
    """注释坐标索引，只依据起止坐标判断包含关系"""

    def __init__(self, comments: List[CommentSpan]):
        self.spans = list(comments)

    def contains(self, start: Position, end: Position) -> bool:
        return any(start >= span.start and end <= span.end for span in self.spans)


class LiteralClassifier:
    """判断字面量是否需要改写（按顺序匹配，先中先返回）"""

    def __init__(self, comment_index: CommentSpanIndex):
        self.comment_index = comment_index

    def is_eligible(self, literal: GoStringLiteral) -> bool:
        # 结构体标签和 import 路径不是界面文案，import 路径也放不下调用表达式
        if literal.role in (LiteralRole.FIELD_TAG, LiteralRole.IMPORT_PATH):
            return False
        # 已经是 i18n.Message 的 Other 字段，保证重复运行不再改写
        if literal.role is LiteralRole.WRAPPED_FALLBACK:
            return False
        if not contains_chinese(literal.raw):
            return False
        if self.comment_index.contains(literal.start, literal.end):
            return False
        return True


def generate_message_id(message: str, max_chars: int = MAX_ID_CHARS) -> str:
    """根据字面量文本生成消息 ID

    包含中文时取每个汉字拼音首字母，否则取英文和数字（转小写），
    最多 max_chars 个字符。结果为空或不以字母开头时返回 "msg"。
    注意：截断后不同消息可能得到相同 ID，这里不做去重。
    """
    message = strip_delimiters(message)
    if not message:
        return FALLBACK_ID

    letters: List[str] = []
    if contains_chinese(message):
        # 只取汉字的拼音首字母，其余字符跳过
        for char in message:
            if not contains_chinese(char):
                continue
            pys = pinyin(char, style=Style.FIRST_LETTER, strict=False, errors="ignore")
            if pys and pys[0] and pys[0][0]:
                letters.append(pys[0][0][0].lower())
                if len(letters) >= max_chars:
                    break
    else:
        for char in message:
            if ASCII_ALNUM_RE.match(char):
                letters.append(char.lower())
                if len(letters) >= max_chars:
                    break

    message_id = "".join(letters)
    if not message_id or not message_id[0].isascii() or not message_id[0].isalpha():
        return FALLBACK_ID
    return message_id


class TreeRewriter:
    """遍历语法树，把需要改写的字面量替换为 i18n 调用"""

    def rewrite(self, unit: GoSourceUnit) -> Tuple[GoSourceUnit, bool]:
        classifier = LiteralClassifier(CommentSpanIndex(unit.comments))
        rewritten = False
        for literal in iter_string_literals(unit.root, unit.source):
            if not classifier.is_eligible(literal):
                continue
            call = LocalizeCall(message_id=generate_message_id(literal.raw), fallback=literal)
            unit.replace(literal, call)
            rewritten = True
        return unit, rewritten


def ensure_import(unit: GoSourceUnit, import_path: str = I18N_IMPORT_PATH) -> bool:
    """确保导入了 import_path，已存在则不做任何事；返回是否新增"""
    for spec in unit.imports:
        if spec.path == import_path:
            return False
    unit.imports.append(ImportSpec(path=import_path))
    return True


class GoSourcePrinter:
    """把改写后的语法树输出为源码：未改动的部分原样保留"""

    def __init__(self, package: str = I18N_PACKAGE):
        self.package = package

    def render(self, unit: GoSourceUnit) -> str:
        edits: List[Tuple[int, int, str]] = []
        for call in unit.replacements:
            edits.append((call.fallback.start_byte, call.fallback.end_byte, call.render(self.package)))
        new_imports = [spec for spec in unit.imports if spec.is_new]
        if new_imports:
            edits.append(self._import_edit(unit, new_imports))

        edits.sort(key=lambda e: (e[0], e[1]))
        for (s1, e1, _), (s2, e2, _) in zip(edits, edits[1:]):
            if s2 < e1:
                raise SerializationError(f"改写区间重叠: [{s1}, {e1}) 与 [{s2}, {e2})")

        out = unit.source
        for start, end, text in reversed(edits):
            out = out[:start] + text.encode("utf-8") + out[end:]
        try:
            return out.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SerializationError(f"输出内容不是合法的 UTF-8: {e}") from e

    def _import_edit(self, unit: GoSourceUnit, new_imports: List[ImportSpec]) -> Tuple[int, int, str]:
        lines = [_format_import_spec(spec) for spec in new_imports]
        decls = [child for child in unit.root.children if child.type == "import_declaration"]

        if not decls:
            package_clause = next((c for c in unit.root.children if c.type == "package_clause"), None)
            if package_clause is None:
                raise SerializationError("缺少 package 声明，无法插入 import")
            if len(lines) == 1:
                block = f"import {lines[0]}"
            else:
                block = "import (\n" + "".join(f"\t{line}\n" for line in lines) + ")"
            pos = package_clause.end_byte
            following = unit.source[pos:]
            text = "\n\n" + block
            if not following.startswith(b"\n\n"):
                text += "\n"
            return pos, pos, text

        last = decls[-1]
        spec_list = next((c for c in last.children if c.type == "import_spec_list"), None)
        if spec_list is not None:
            specs = [c for c in spec_list.children if c.type == "import_spec"]
            if specs:
                # 插在最后一项所在行的行尾，行尾注释留在原来那一项后面
                pos = specs[-1].end_byte
                line_end = unit.source.find(b"\n", pos)
                closing = spec_list.end_byte - 1
                if line_end != -1 and line_end < closing:
                    pos = line_end
                return pos, pos, "".join(f"\n\t{line}" for line in lines)
            body = "(\n" + "".join(f"\t{line}\n" for line in lines) + ")"
            return spec_list.start_byte, spec_list.end_byte, body

        # import "fmt" -> import ( ... )
        spec = next(c for c in last.children if c.type == "import_spec")
        existing = unit.node_text(spec)
        body = f"(\n\t{existing}\n" + "".join(f"\t{line}\n" for line in lines) + ")"
        return spec.start_byte, spec.end_byte, body


def _format_import_spec(spec: ImportSpec) -> str:
    if spec.name:
        return f'{spec.name} "{spec.path}"'
    return f'"{spec.path}"'


@dataclass
class TransformResult:
    """一次改写的结果"""
    output: str
    changed: bool
    messages: List[MessageRecord]


def collect_chinese_strings(unit: GoSourceUnit) -> List[str]:
    """列出会被改写的中文字符串（去除引号）"""
    classifier = LiteralClassifier(CommentSpanIndex(unit.comments))
    return [lit.text for lit in iter_string_literals(unit.root, unit.source) if classifier.is_eligible(lit)]


def transform_source(source: Union[str, bytes], import_path: str = I18N_IMPORT_PATH) -> TransformResult:
    """解析 -> 改写 -> 补充 import -> 输出"""
    return transform_unit(GoSourceParser().parse(source), import_path)


def transform_unit(unit: GoSourceUnit, import_path: str = I18N_IMPORT_PATH) -> TransformResult:
    """改写已解析的源文件并输出"""
    unit, rewritten = TreeRewriter().rewrite(unit)
    print(f"[改写] 替换了 {len(unit.replacements)} 个中文字符串")
    if rewritten and ensure_import(unit, import_path):
        print(f"[导入] 添加 import \"{import_path}\"")
    output = GoSourcePrinter().render(unit)
    return TransformResult(output=output, changed=rewritten, messages=unit.messages)


class MessageCatalog:
    """go-i18n 消息文件（JSON）"""

    def __init__(self, messages: Optional[List[MessageRecord]] = None):
        self.entries: Dict[str, str] = {}
        for record in messages or []:
            self.add(record)

    def add(self, record: MessageRecord) -> bool:
        existing = self.entries.get(record.id)
        if existing is None:
            self.entries[record.id] = record.default_message
            return True
        if existing != record.default_message:
            print(f"[冲突] ID '{record.id}' 已对应 '{existing}'，忽略 '{record.default_message}'")
        return False

    @property
    def records(self) -> List[MessageRecord]:
        return [MessageRecord(id=k, default_message=v) for k, v in self.entries.items()]

    def write(self, file_path: Path, translations: Optional[Dict[str, str]] = None) -> int:
        """写入消息文件，只追加新的 ID，已有条目保持不变；返回新增数量"""
        file_path = Path(file_path)
        data: Dict[str, object] = {}
        if file_path.exists():
            try:
                with open(file_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except json.JSONDecodeError:
                print(f"[目录] {file_path.name} 解析失败，将重新生成")
                data = {}

        added = 0
        for message_id, default_message in self.entries.items():
            if message_id in data:
                continue
            text = default_message if translations is None else translations.get(message_id, "")
            if not text:
                continue
            data[message_id] = {"other": text}
            added += 1

        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
            f.write("\n")
        print(f"[目录] {file_path}: 新增 {added} 条，共 {len(data)} 条")
        return added


DEFAULT_TRANSLATION_PROMPT = """请把下面 JSON 中的中文界面文案翻译成 {target_language}。
输入是一个数组，每项包含 id 和 text。
只返回 JSON 数组，每项格式为 {{"id": "...", "translation": "..."}}，顺序与输入一致。

{source_strings}
"""


class TranslationService:
    """翻译服务"""

    def __init__(
            self,
            api_key: str, base_url: str = "", model_name: str = "gpt-4o-mini",
            custom_prompt: str = "", target_language: str = "en"):
        self.client = openai.OpenAI(api_key=api_key, base_url=base_url or None)
        self.model_name = model_name
        self.custom_prompt = custom_prompt or DEFAULT_TRANSLATION_PROMPT
        self.target_language = target_language

    def translate_messages(self, messages: List[MessageRecord]) -> Dict[str, str]:
        """批量翻译消息，返回 id -> 译文；失败时返回空字典"""
        if not messages:
            return {}

        print(f"[翻译] 开始翻译 {len(messages)} 条消息到 {self.target_language}")
        source_strings = json.dumps(
            [{"id": m.id, "text": m.default_message} for m in messages], ensure_ascii=False
        )
        prompt = self.custom_prompt.format(
            target_language=self.target_language,
            source_strings=source_strings,
        )
        try:
            print(f"[API调用] 使用模型: {self.model_name}")
            response = self.client.chat.completions.create(
                model=self.model_name,
                messages=[
                    {"role": "system", "content": "你是一个专业的软件国际化翻译专家。"},
                    {"role": "user", "content": prompt}
                ],
                temperature=0.3,
                timeout=Timeout(120.0, read=120.0, write=20.0, connect=20.0),
                stream=True
            )

            result_text = ""
            for chunk in response:
                if not chunk.choices:
                    continue
                result_text += chunk.choices[0].delta.content or ""
            print(f"[翻译响应] 收到API响应，长度: {len(result_text)} 字符")
            return self._parse_result(result_text)
        except Exception as e:
            print(f"[翻译失败] {e}")
            print_exc()
            return {}

    def _parse_result(self, result_text: str) -> Dict[str, str]:
        try:
            result = json.loads(result_text)
        except json.JSONDecodeError:
            print("[解析] JSON解析失败，尝试提取JSON部分")
            json_match = re.search(r'\[.*\]', result_text, re.DOTALL)
            if not json_match:
                raise ValueError("无法解析翻译结果")
            result = json.loads(json_match.group())

        translations = {}
        for item in result if isinstance(result, list) else []:
            if not isinstance(item, dict):
                continue
            message_id = str(item.get("id", "")).strip()
            translation = str(item.get("translation", "")).strip()
            if message_id and translation:
                translations[message_id] = translation
        print(f"[翻译成功] 解析到 {len(translations)} 条译文")
        return translations
