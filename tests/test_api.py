from errors import ProcessingFailedError


def test_root(make_client):
    with make_client() as client:
        assert client.get("/").json() == {"message": "Gita Reflection API running"}


def test_create_conversation_is_idempotent(make_client):
    with make_client() as client:
        first = client.post("/api/conversations", json={"sessionId": "s1"})
        second = client.post("/api/conversations", json={"sessionId": "s1"})
    assert first.status_code == 200
    body = first.json()
    assert body["sessionId"] == "s1"
    assert body["messages"] == []
    assert body["currentStep"] == 0
    assert body["progressPercentage"] == 0
    assert body["selectedVerseId"] is None
    assert second.json()["id"] == body["id"]


def test_create_conversation_requires_session_id(make_client):
    with make_client() as client:
        assert client.post("/api/conversations", json={}).status_code == 400
        assert client.post("/api/conversations", json={"sessionId": "  "}).status_code == 400


def test_get_conversation(make_client):
    with make_client() as client:
        assert client.get("/api/conversations/s1").status_code == 404
        client.post("/api/conversations", json={"sessionId": "s1"})
        assert client.get("/api/conversations/s1").json()["sessionId"] == "s1"


def test_send_message_errors(make_client, reply):
    with make_client(ProcessingFailedError("timeout")) as client:
        assert client.post("/api/conversations/nobody/messages", json={"message": "hi"}).status_code == 404
        client.post("/api/conversations", json={"sessionId": "s1"})
        assert client.post("/api/conversations/s1/messages", json={"message": "  "}).status_code == 400
        assert client.post("/api/conversations/s1/messages", json={}).status_code == 400
        failed = client.post("/api/conversations/s1/messages", json={"message": "hi"})
        assert failed.status_code == 500
        assert client.get("/api/conversations/s1").json()["messages"] == []


def test_reflection_session_end_to_end(make_client, reply):
    script = [
        reply(progress=20),
        reply(progress=40),
        reply(progress=60),
        reply(progress=90, show=True, query="duty", message="Here is a verse to sit with."),
    ]
    with make_client(*script) as client:
        client.post("/api/conversations", json={"sessionId": "s1"})

        first = client.post("/api/conversations/s1/messages", json={"message": "I feel anxious about my exam"}).json()
        assert first["conversation"]["progressPercentage"] == 20
        options = first["aiResponse"]["options"]
        assert 2 <= len(options) <= 3
        assert first["aiResponse"]["shouldShowVerse"] is False
        assert first["relevantVerse"] is None

        second = client.post("/api/conversations/s1/messages", json={"message": options[0]}).json()
        assert second["conversation"]["progressPercentage"] == 40

        client.post("/api/conversations/s1/messages", json={"message": "I worry about the results"})
        last = client.post("/api/conversations/s1/messages", json={"message": "I just want to do well"}).json()

        assert last["aiResponse"]["shouldShowVerse"] is True
        verse = last["relevantVerse"]
        assert verse["verseNumber"] == 47
        assert verse["wordMeanings"][0] == {"sanskrit": "karmani", "english": "in prescribed duties"}
        assert last["conversation"]["currentStep"] == 4
        assert len(last["conversation"]["messages"]) == 8
        assert last["conversation"]["selectedVerseId"] == verse["id"]

        detail = client.get(f"/api/verses/{verse['id']}").json()
        assert detail["verse"]["translation"].startswith("You have a right to perform your prescribed duty")
        assert detail["chapter"]["chapterNumber"] == 2


def test_verse_and_chapter_routes(make_client):
    with make_client() as client:
        assert client.get("/api/verses/999").status_code == 404
        chapters = client.get("/api/chapters").json()
        assert [c["chapterNumber"] for c in chapters] == [1, 2]
        verses = client.get("/api/chapters/2/verses").json()
        assert [v["verseNumber"] for v in verses] == [13, 20, 47]
        assert client.get("/api/chapters/7/verses").status_code == 404


def test_search_route(make_client):
    with make_client() as client:
        found = client.get("/api/search", params={"q": "soul"}).json()["results"]
        assert 20 in [v["verseNumber"] for v in found]
        assert client.get("/api/search", params={"q": "nonexistent-term-xyz"}).json() == {"results": []}
        assert client.get("/api/search").json() == {"results": []}


def test_storage_status(make_client):
    with make_client() as client:
        body = client.get("/test").json()
    assert body["storage"] == "memory"
    assert body["fallback"] is False
    assert body["chapters"] == 2


def test_bad_path_and_query_params(make_client):
    with make_client() as client:
        for response in (client.get("/api/verses/abc"), client.get("/api/chapters/two/verses")):
            assert response.status_code == 400
            assert response.json()["detail"] == "Invalid request"
