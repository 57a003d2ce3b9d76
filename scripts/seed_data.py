#!/usr/bin/env python3
"""
Seed script — creates a small, realistic dataset through the public API.

Creates:
  • 8 users (password "password123")
  • A follow graph (each user follows 3 others)
  • 3 posts per user across genres, a few of them promotions
  • Random likes, comments and views
  • Direct-message threads, some left unread so conversation
    summaries show non-zero unread counts

Run after docker compose up:
  python scripts/seed_data.py --api-url http://localhost:8000

Tokens are printed so you can use them in curl commands.
"""
import argparse
import json
import random
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Optional


BASE_USERS = [
    ("alice_chen", "Alice Chen"),
    ("bob_martinez", "Bob Martinez"),
    ("carol_singh", "Carol Singh"),
    ("dave_kim", "Dave Kim"),
    ("eve_johnson", "Eve Johnson"),
    ("frank_williams", "Frank Williams"),
    ("grace_li", "Grace Li"),
    ("henry_brown", "Henry Brown"),
]

SAMPLE_POSTS = [
    ("Just shipped a new feature to production 🚀 Zero downtime deploys are beautiful.", "Technology"),
    ("Sunday league final tonight. We are bringing the trophy home ⚽", "Sports"),
    ("Found a vinyl pressing of Kind of Blue at the flea market today.", "Music"),
    ("Watercolour practice, day 40. The skies are finally looking like skies.", "Art"),
    ("Homemade ramen: 12 hours of broth, 5 minutes to eat it.", "Food"),
    ("Three days in Lisbon and I already want to move here.", "Travel"),
    ("Finally beat the last boss. No spoilers, but wow.", "Gaming"),
    ("Thrifted a denim jacket that fits like it was made for me.", "Fashion"),
    ("Our small bakery just hit 1,000 orders this month! Thank you all.", "Business"),
    ("Morning runs are getting easier. 5k in under 30 minutes 🏃", "Health"),
    ("Anyone else's cat sit on the keyboard during every video call?", "Other"),
    ("Async Python is a joy once the event loop finally clicks.", "Technology"),
]

SAMPLE_COMMENTS = [
    "Love this!",
    "Congrats 🎉",
    "Totally agree.",
    "Where was this?",
    "Need the recipe please",
    "So good.",
]

SAMPLE_THREADS = [
    ["Hey, are you coming on Saturday?", "Yes! What time?", "Around 7, bring snacks"],
    ["Saw your post, looks amazing", "Thanks! Took forever"],
    ["Can you review my PR when you get a sec?", "On it", "Left a few comments", "Thanks!"],
]


@dataclass
class ApiClient:
    base_url: str

    def request(
        self, method: str, path: str, data: Optional[dict] = None, token: Optional[str] = None
    ) -> dict:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        body = json.dumps(data).encode() if data is not None else None
        req = urllib.request.Request(url, data=body, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                return json.loads(resp.read())
        except urllib.error.HTTPError as e:
            print(f"  HTTP {e.code} on {method} {path}: {e.read().decode()}")
            return {}

    def post(self, path: str, data: Optional[dict] = None, token: Optional[str] = None) -> dict:
        return self.request("POST", path, data, token)

    def get(self, path: str, token: Optional[str] = None) -> dict:
        return self.request("GET", path, token=token)


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for _ in range(retries):
        try:
            if client.get("/api/health").get("success"):
                print("  API is ready!\n")
                return
        except urllib.error.URLError:
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def sign_up(client: ApiClient, username: str, display_name: str) -> Optional[dict]:
    payload = {
        "username": username,
        "email": f"{username}@example.com",
        "password": "password123",
        "displayName": display_name,
    }
    result = client.post("/api/auth/signup", payload)
    if not result:
        # already seeded on a previous run
        result = client.post(
            "/api/auth/login", {"email": payload["email"], "password": payload["password"]}
        )
    if not result.get("token"):
        return None
    return {"id": result["user"]["userId"], "username": username, "token": result["token"]}


def main(api_url: str) -> None:
    client = ApiClient(api_url)
    wait_for_api(client)

    # ── Create users ─────────────────────────────────────────────────────
    print("Creating users...")
    users: list[dict] = []
    for username, display_name in BASE_USERS:
        user = sign_up(client, username, display_name)
        if user:
            users.append(user)
            print(f"  ✓ {username} ({user['id']})")
        else:
            print(f"  ✗ Failed to create {username}")

    if len(users) < 2:
        print("Not enough users created — aborting")
        return

    # ── Create follow graph ───────────────────────────────────────────────
    print("\nCreating follow relationships...")
    for follower in users:
        others = [u for u in users if u is not follower]
        for followee in random.sample(others, k=min(3, len(others))):
            client.post(f"/api/users/{followee['id']}/follow", token=follower["token"])
    print("  ✓ Follow graph created")

    # ── Create posts ──────────────────────────────────────────────────────
    print("\nCreating posts...")
    post_ids: list[str] = []
    pool = SAMPLE_POSTS[:]
    random.shuffle(pool)
    idx = 0
    for user in users:
        for _ in range(3):
            content, genre = pool[idx % len(pool)]
            idx += 1
            result = client.post(
                "/api/posts",
                {"content": content, "genre": genre, "isPromotion": idx % 7 == 0},
                token=user["token"],
            )
            if result.get("post"):
                post_ids.append(result["post"]["postId"])
    print(f"  ✓ {len(post_ids)} posts created")

    # ── Likes, comments, views ────────────────────────────────────────────
    print("\nAdding engagement...")
    likes = comments = 0
    for post_id in post_ids:
        for user in random.sample(users, k=random.randint(0, 4)):
            client.post(f"/api/posts/{post_id}/view", token=user["token"])
            client.post(f"/api/posts/{post_id}/like", token=user["token"])
            likes += 1
            if random.random() < 0.4:
                client.post(
                    f"/api/posts/{post_id}/comment",
                    {"text": random.choice(SAMPLE_COMMENTS)},
                    token=user["token"],
                )
                comments += 1
    print(f"  ✓ {likes} likes, {comments} comments added")

    # ── Direct messages ───────────────────────────────────────────────────
    print("\nSending messages...")
    sent = 0
    first = users[0]
    for other, thread in zip(users[1:], SAMPLE_THREADS * len(users)):
        # alternate speakers, starting with the other user
        for i, text in enumerate(thread):
            sender, receiver = (other, first) if i % 2 == 0 else (first, other)
            result = client.post(
                "/api/messages", {"receiverId": receiver["id"], "content": text}, token=sender["token"]
            )
            if result.get("message"):
                sent += 1
    print(f"  ✓ {sent} messages sent")

    # ── Print summary ─────────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("Seed complete! Here are some commands to try:\n")
    token = first["token"]
    print(f"# Conversations for '{first['username']}':")
    print(f"  curl -s '{api_url}/api/messages/conversations' \\")
    print(f"    -H 'Authorization: Bearer {token}' | python3 -m json.tool\n")
    print(f"# Mark the thread with '{users[1]['username']}' as read:")
    print(f"  curl -s -X PATCH '{api_url}/api/messages/read/{users[1]['id']}' \\")
    print(f"    -H 'Authorization: Bearer {token}' | python3 -m json.tool\n")
    print("# Browse posts:")
    print(f"  curl -s '{api_url}/api/posts?genre=Technology' | python3 -m json.tool\n")
    print("# Check Jaeger traces: http://localhost:16686")
    print("# Check Prometheus: http://localhost:9090")
    print("# Check MinIO: http://localhost:9001 (minioadmin/minioadmin)")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Social Post API")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    args = parser.parse_args()
    main(args.api_url)
