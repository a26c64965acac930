import io
import socket
import threading

from domains.ingest_server.session import decode_session, handle_connection, materialize
from relay.models.schemas import Session
from relay.utils.frames import SENTINEL, encode_frame


def session_bytes(*frames: str) -> bytes:
    return b"".join(encode_frame(frame) for frame in frames)


def test_decode_session_flattens_keys_and_values():
    stream = io.BytesIO(session_bytes("source.props", "user.name", "alice", "user.age", "30", SENTINEL))

    session = decode_session(stream)

    assert session.filename == "source.props"
    assert session.lines == ["user.name", "alice", "user.age", "30"]


def test_decode_session_stops_at_sentinel_collision():
    stream = io.BytesIO(session_bytes("clash.props", "status", SENTINEL, "after", "value", SENTINEL))

    session = decode_session(stream)

    assert session.lines == ["status"]


def test_decode_empty_session():
    session = decode_session(io.BytesIO(session_bytes("empty.props", SENTINEL)))

    assert session == Session(filename="empty.props", lines=[])


def test_materialize_writes_one_line_per_frame(tmp_path):
    session = Session(filename="source.props", lines=["user.name", "alice", "user.age", "30"])

    path = materialize(session, tmp_path)

    assert path == tmp_path / "source.props"
    assert path.read_text(encoding="utf-8") == "user.name\nalice\nuser.age\n30\n"
    assert list(tmp_path.iterdir()) == [path]


def test_materialize_defaults_to_working_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    materialize(Session(filename="cwd.props", lines=["k", "v"]))

    assert (tmp_path / "cwd.props").read_text() == "k\nv\n"


def test_materialize_overwrites_existing_file(tmp_path):
    (tmp_path / "again.props").write_text("old content that is longer\n")

    materialize(Session(filename="again.props", lines=["new"]), tmp_path)

    assert (tmp_path / "again.props").read_text() == "new\n"


def test_handle_connection_writes_file_in_working_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    server_end, client_end = socket.socketpair()
    with client_end:
        client_end.sendall(session_bytes("source.props", "user.name", "alice", "user.age", "30", SENTINEL))

    path = handle_connection(server_end, ("127.0.0.1", 50000))

    assert path is not None
    lines = (tmp_path / "source.props").read_text().splitlines()
    assert len(lines) == 4
    assert dict(zip(lines[::2], lines[1::2])) == {"user.name": "alice", "user.age": "30"}
    assert server_end.fileno() == -1


def test_truncated_session_writes_nothing(tmp_path, log_messages):
    server_end, client_end = socket.socketpair()
    with client_end:
        client_end.sendall(session_bytes("partial.props", "user.name", "alice"))

    assert handle_connection(server_end, ("127.0.0.1", 50001), directory=tmp_path) is None

    assert not (tmp_path / "partial.props").exists()
    assert any("failed while reading" in message for message in log_messages)


def test_unwritable_target_is_logged(tmp_path, log_messages):
    server_end, client_end = socket.socketpair()
    with client_end:
        client_end.sendall(session_bytes("missing-dir/out.props", "k", SENTINEL))

    assert handle_connection(server_end, ("127.0.0.1", 50002), directory=tmp_path) is None
    assert any("Error writing to file" in message for message in log_messages)


def test_concurrent_same_name_sessions_never_interleave(tmp_path):
    long_session = Session(filename="shared.props", lines=[f"long-{i}" for i in range(2000)])
    short_session = Session(filename="shared.props", lines=["short"])
    expected = {long_session.render(), short_session.render()}
    barrier = threading.Barrier(2)

    def write(session):
        barrier.wait()
        materialize(session, tmp_path)

    for _ in range(20):
        threads = [threading.Thread(target=write, args=(s,)) for s in (long_session, short_session)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert (tmp_path / "shared.props").read_text() in expected

    assert [p.name for p in tmp_path.iterdir()] == ["shared.props"]


def test_concurrent_distinct_sessions_each_write_their_file(tmp_path):
    sessions = [Session(filename=f"file-{i}.props", lines=[f"key{i}", f"value{i}"]) for i in range(8)]
    threads = [threading.Thread(target=materialize, args=(s, tmp_path)) for s in sessions]

    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    for i in range(8):
        assert (tmp_path / f"file-{i}.props").read_text() == f"key{i}\nvalue{i}\n"
