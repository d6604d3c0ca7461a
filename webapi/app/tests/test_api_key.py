import logging

from .conftest import TEST_API_KEY


def test_weather_secure_rejects_without_key(make_client):
    client = make_client()
    response = client.get("/weatherforecastsecure")
    assert response.status_code == 401
    assert response.json()["detail"] == "API key was not provided"


def test_weather_secure_rejects_wrong_key(make_client):
    client = make_client()
    response = client.get("/weatherforecastsecure", headers={"X-API-KEY": "nope"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid API key"


def test_weather_secure_key_is_case_sensitive(make_client):
    client = make_client()
    response = client.get("/weatherforecastsecure", headers={"X-API-KEY": TEST_API_KEY.upper()})
    assert response.status_code == 401


def test_weather_secure_accepts_key(make_client):
    client = make_client()
    response = client.get("/weatherforecastsecure", headers={"X-API-KEY": TEST_API_KEY})
    assert response.status_code == 200

    forecasts = response.json()
    assert len(forecasts) == 5
    assert set(forecasts[0]) == {"date", "temperatureC", "temperatureF", "summary"}


def test_weather_secure_logs_request(make_client, caplog):
    client = make_client()

    with caplog.at_level(logging.INFO, logger="webapi.app.routes"):
        response = client.get("/weatherforecastsecure", headers={"X-API-KEY": TEST_API_KEY})

    assert response.status_code == 200
    assert "Getting weather forecast" in caplog.messages


def test_missing_api_key_configuration_is_server_error(make_client):
    client = make_client(API_KEY=None)
    response = client.get("/weatherforecastsecure", headers={"X-API-KEY": "anything"})
    assert response.status_code == 500
