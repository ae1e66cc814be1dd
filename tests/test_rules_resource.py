from __future__ import annotations

from helpers import make_file_ctx

from cppconform.rules.resource import NoOwningRawPointer, is_bare_pointer


def _check(project_ctx, content: str):
    ctx = make_file_ctx(project_ctx, relpath="src/owner.cpp", content=content)
    return NoOwningRawPointer().check_file(ctx)


def test_is_bare_pointer() -> None:
    assert is_bare_pointer("int*")
    assert is_bare_pointer("char* const")
    assert not is_bare_pointer("int&")
    assert not is_bare_pointer("std::unique_ptr<int>")


def test_pointer_initialized_from_new(project_ctx) -> None:
    violations = _check(project_ctx, "void f() {\n  int* p = new int(3);\n  delete p;\n}\n")
    assert len(violations) == 1
    v = violations[0]
    assert v.rule_id == "no-owning-raw-pointer"
    assert v.severity == "warning"
    assert v.message == "Raw pointer `p` (int*) owns memory: it is initialized from an allocation."
    assert not v.autofix
    assert v.location is not None and v.location.start_line == 2


def test_pointer_assigned_later(project_ctx) -> None:
    violations = _check(project_ctx, "void k() {\n  int* p = nullptr;\n  p = new int(1);\n}\n")
    assert len(violations) == 1
    assert "assigned an allocation" in violations[0].message
    assert [r.start_line for r in violations[0].related] == [3]


def test_parameter_released_with_free(project_ctx) -> None:
    violations = _check(project_ctx, "void g(char* buf) { free(buf); }\n")
    assert [v.message for v in violations] == ["Raw pointer `buf` (char*) owns memory: it is released with `free`."]


def test_array_delete_counts_as_release(project_ctx) -> None:
    violations = _check(project_ctx, "void m(int* arr) { delete[] arr; }\n")
    assert len(violations) == 1
    assert "released with `delete`" in violations[0].message


def test_member_initializer_list_allocation(project_ctx) -> None:
    content = """\
class Buffer {
public:
    Buffer(int n) : data_(new char[n]) {}
private:
    char* data_;
};
"""
    violations = _check(project_ctx, content)
    assert len(violations) == 1
    assert violations[0].message.startswith("Raw pointer `data_` (char*)")
    assert [r.start_line for r in violations[0].related] == [3]


def test_observing_pointers_and_smart_pointers_pass(project_ctx) -> None:
    content = """\
void h(const char* name) { puts(name); }
void n() {
    int x = 1;
    int* p = &x;
    std::unique_ptr<int> owner(new int(2));
}
"""
    assert _check(project_ctx, content) == []
