# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
End-to-end conversion of a realistic multi-service compose file.
"""
import pytest
from d2q.CONVERTERS.to_quadlet import parse_quadlet
from d2q.MANAGERS.quadlet_orchestrator import QuadletOrchestrator
from d2q.PARSERS.compose_parser import ComposeParser

COMPOSE = """
services:
  proxy:
    image: docker.io/library/nginx:${NGINX_TAG:-1.25}
    ports:
      - "80:80"
      - target: 443
        published: 8443
        protocol: tcp
    volumes:
      - ./nginx.conf:/etc/nginx/nginx.conf:ro
    depends_on:
      app:
        condition: service_healthy
    restart: unless-stopped
    labels:
      io.containers.autoupdate: registry
      description: public entry point

  app:
    build: .
    command: ["gunicorn", "--bind", "0.0.0.0:8000", "app:wsgi"]
    environment:
      DATABASE_URL: postgres://app:${DB_PASSWORD}@db/app
      DEBUG: false
    networks:
      backend:
        aliases: [api]
    healthcheck:
      test: ["CMD-SHELL", "curl -f http://localhost:8000/health"]
      interval: 30s
      retries: 3
    depends_on: [db]
    user: "1000:1000"
    read_only: true
    tmpfs: /tmp
    security_opt:
      - no-new-privileges:true

  db:
    image: postgres:16
    volumes:
      - type: volume
        source: pgdata
        target: /var/lib/postgresql/data
    environment:
      - POSTGRES_PASSWORD=${DB_PASSWORD}
    ulimits:
      nofile:
        soft: 1024
        hard: 4096
    logging:
      driver: journald
    restart: on-failure:5

volumes:
  pgdata: {}

networks:
  backend: {}
"""


@pytest.fixture
def units():
    orchestrator = QuadletOrchestrator(compose_parser=ComposeParser(context={"DB_PASSWORD": "s3cret"}))
    files = orchestrator.compose_to_quadlet(COMPOSE, {"install": {"wanted_by": ["default.target"]}})
    return {f.filename: parse_quadlet(f.content) for f in files}


def values(section, key):
    return [v for k, v in section if k == key]


def test_one_unit_per_service(units):
    assert list(units) == ["proxy.container", "app.container", "db.container"]
    for unit in units.values():
        assert unit["Install"] == [("WantedBy", "default.target")]


def test_proxy(units):
    proxy = units["proxy.container"]
    assert proxy["Unit"] == [("Wants", "app.service"), ("After", "app.service")]
    container = proxy["Container"]
    assert values(container, "Image") == ["docker.io/library/nginx:1.25"]
    assert values(container, "PublishPort") == ["80:80", "8443:443"]
    assert values(container, "Volume") == ["./nginx.conf:/etc/nginx/nginx.conf:ro"]
    assert values(container, "Label") == ['"description=public entry point"']
    assert values(container, "AutoUpdate") == ["registry"]
    assert proxy["Service"] == [("Restart", "always")]


def test_app(units):
    app = units["app.container"]
    assert app["Unit"] == [("Wants", "db.service"), ("After", "db.service")]
    container = app["Container"]
    assert values(container, "Image") == ["app.build"]
    assert values(container, "Exec") == ["gunicorn --bind 0.0.0.0:8000 app:wsgi"]
    assert values(container, "Environment") == ["DATABASE_URL=postgres://app:s3cret@db/app", "DEBUG=false"]
    assert values(container, "Network") == ["backend"]
    assert values(container, "NetworkAlias") == ["api"]
    assert values(container, "HealthCmd") == ["CMD-SHELL curl -f http://localhost:8000/health"]
    assert values(container, "HealthInterval") == ["30s"]
    assert values(container, "HealthRetries") == ["3"]
    assert values(container, "User") == ["1000"]
    assert values(container, "Group") == ["1000"]
    assert values(container, "ReadOnly") == ["true"]
    assert values(container, "Tmpfs") == ["/tmp"]
    assert values(container, "NoNewPrivileges") == ["true"]
    assert "Service" not in app


def test_db(units):
    db = units["db.container"]
    assert "Unit" not in db
    container = db["Container"]
    assert values(container, "Volume") == ["pgdata:/var/lib/postgresql/data"]
    assert values(container, "Environment") == ["POSTGRES_PASSWORD=s3cret"]
    assert values(container, "Ulimit") == ["nofile=1024:4096"]
    assert values(container, "LogDriver") == ["journald"]
    # on-failure:N has no systemd equivalent
    assert "Service" not in db
