import pytest

pytest.importorskip("flask")

import app as app_module
from models import Placement, PuzzleDescriptor
from solver.board import Board
from solver.packer import covers_exactly
from pieces import DEFAULT_LIBRARY


@pytest.fixture
def client():
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as c:
        yield c


def test_index_describes_library_and_tiers(client):
    resp = client.get("/")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["rows"] == 5 and data["cols"] == 11
    assert [p["id"] for p in data["pieces"]] == list("ABCDEFGHIJKL")
    assert [t["player_pieces"] for t in data["tiers"]] == [3, 4, 5, 6, 7]


def test_generate_stores_latest_puzzle(client, monkeypatch, reference_solution):
    seen = {}
    puzzle = PuzzleDescriptor(
        tier=2,
        name="Easy",
        locked=tuple(reference_solution[:8]),
        player_piece_ids=tuple(p.piece_id for p in reference_solution[8:]),
        solution=tuple(reference_solution),
        seed=99,
        attempts=3,
    )

    def fake_run(level, seed, max_seconds):
        seen.update(level=level, seed=seed)
        return puzzle, None, None

    monkeypatch.setattr(app_module, "run_generate_isolated", fake_run)
    resp = client.post("/generate", json={"tier": 2, "seed": "99"})
    assert resp.status_code == 200
    data = resp.get_json()
    assert seen == {"level": 2, "seed": 99}
    assert data["ok"] is True
    assert data["puzzle"]["tier"] == 2
    assert len(data["puzzle"]["locked"]) == 8

    latest = client.get("/puzzle/latest").get_json()
    assert latest["puzzle"] == data["puzzle"]

    progress = client.get("/progress3")
    snap = progress.get_json()
    assert snap["done"] is True and snap["ok"] is True
    assert snap["status"] == "Solved"
    assert snap["result_url"].endswith("/puzzle/latest")
    assert progress.headers["Cache-Control"] == "no-store, max-age=0"


def test_generate_failure_surfaces_reason(client, monkeypatch):
    monkeypatch.setattr(
        app_module,
        "run_generate_isolated",
        lambda level, seed, max_seconds: (None, "Stopped before puzzle (timebox)", "killed: timeout"),
    )
    data = client.post("/generate", data={"tier": "5"}).get_json()
    assert data["ok"] is False
    assert data["puzzle"] is None
    assert data["reason"] == "Stopped before puzzle (timebox) (killed: timeout)"
    snap = client.get("/progress3").get_json()
    assert snap["status"] == "Error"
    assert snap["ok"] is False


@pytest.mark.parametrize("body", [{}, {"tier": 0}, {"tier": "easy"}, {"tier": 2, "seed": "x"}])
def test_generate_rejects_bad_input(client, body):
    resp = client.post("/generate", json=body)
    assert resp.status_code == 400
    assert resp.get_json()["ok"] is False


def test_solve_completes_locked_board(client, reference_solution):
    locked = [p.to_dict() for p in reference_solution[:8]]
    resp = client.post("/solve", json={"locked": locked})
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["ok"] is True

    board = Board.from_placements(5, 11, reference_solution[:8], DEFAULT_LIBRARY)
    placed = [Placement.from_dict(p) for p in data["placements"]]
    assert sorted(p.piece_id for p in placed) == sorted(p.piece_id for p in reference_solution[8:])
    assert covers_exactly(board, placed)


def test_solve_with_explicit_order(client, reference_solution):
    locked = [p.to_dict() for p in reference_solution[:8]]
    free = [p.piece_id for p in reference_solution[8:]]
    data = client.post("/solve", json={"locked": locked, "piece_ids": free, "order": True}).get_json()
    assert data["ok"] is True
    assert len(data["placements"]) == 4


def test_count_respects_cap(client):
    data = client.post("/count", json={"locked": [], "max_count": 3}).get_json()
    assert data == {"count": 3, "max_count": 3}


def test_count_full_board_is_one(client, reference_solution):
    locked = [p.to_dict() for p in reference_solution]
    data = client.post("/count", json={"locked": locked}).get_json()
    assert data == {"count": 1, "max_count": 2}


@pytest.mark.parametrize(
    "body, fragment",
    [
        ({"locked": "A"}, "Bad locked placements"),
        ({"locked": [{"piece_id": "Z", "col": 0, "row": 0}]}, "Bad locked placements"),
        ({"piece_ids": "A"}, "must be a list"),
        ({"piece_ids": ["A", "Q"]}, "Unknown piece ids: Q"),
        ({"locked": [{"piece_id": "K", "orientation": 0, "col": 0, "row": 0}], "piece_ids": ["K"]}, "both locked and free"),
    ],
)
def test_bad_solve_payloads_are_400(client, body, fragment):
    resp = client.post("/solve", json=body)
    assert resp.status_code == 400
    assert fragment in resp.get_json()["reason"]


L_PAIR = {
    "rows": 2,
    "cols": 3,
    "pieces": [
        {"id": "P", "shape": [[0, 0], [1, 0], [0, 1]]},
        {"id": "Q", "shape": [[0, 0], [1, 0], [0, 1]]},
    ],
}


def test_count_and_solve_accept_custom_library(client):
    data = client.post("/count", json={"library": L_PAIR, "max_count": 10}).get_json()
    assert data == {"count": 4, "max_count": 10}

    data = client.post("/solve", json={"library": L_PAIR}).get_json()
    assert data["ok"] is True
    assert sorted(p["piece_id"] for p in data["placements"]) == ["P", "Q"]


def test_bad_custom_library_is_400(client):
    bad = dict(L_PAIR, cols=4)
    resp = client.post("/count", json={"library": bad})
    assert resp.status_code == 400
    assert "Bad piece library" in resp.get_json()["reason"]


def test_count_max_is_clamped(client, monkeypatch):
    monkeypatch.setattr(app_module.CFG, "COUNT_LIMIT", 2)
    data = client.post("/count", json={"library": L_PAIR, "max_count": 1000}).get_json()
    assert data == {"count": 2, "max_count": 2}

    data = client.post("/count", json={"library": L_PAIR, "max_count": -5}).get_json()
    assert data == {"count": 1, "max_count": 1}


def test_negative_orientation_is_rejected(client):
    body = {"locked": [{"piece_id": "L", "orientation": -1, "col": 0, "row": 0}]}
    resp = client.post("/solve", json=body)
    assert resp.status_code == 400
    assert "Bad locked placements" in resp.get_json()["reason"]
