#!/usr/bin/env python3
"""
client.py
Terminal demo client for the Potencia chat WebSocket.
Usage: python3 client.py --name Alice [--code ABC123] [--url ws://127.0.0.1:3000/ws]

Commands once connected:
  /add CODE            look a friend up by code
  /msg CODE some text  send a private message
  /quit
"""
import argparse
import asyncio
import itertools
import sys

import websockets

from common.framing import (ACK, ADD_FRIEND, ERROR, ONLINE_USERS, PRIVATE_MESSAGE,
                            REGISTER, SYSTEM_MESSAGE, FrameError, decode_frame,
                            encode_frame)

URL = 'ws://127.0.0.1:3000/ws'

_request_ids = itertools.count(1)


def show(frame):
    mtype = frame.get('type')
    data = frame.get('data')
    if mtype == ONLINE_USERS:
        print(f"[online] {', '.join(data) or '(nobody)'}")
    elif mtype == PRIVATE_MESSAGE:
        who = 'me' if data.get('self') else data.get('from')
        print(f"[{who}] {data.get('message')}")
    elif mtype == SYSTEM_MESSAGE:
        print(f"[system] {data.get('text')}")
    elif mtype == ACK:
        if data.get('success'):
            if 'userCode' in data:
                print(f"Registered as {data['username']}, your code is {data['userCode']}")
            else:
                print(f"Found {data.get('username')} ({data.get('code')})")
        else:
            print('Failed:', data.get('message'))
    elif mtype == ERROR:
        print('Error from server:', data.get('why'))
    else:
        print('Server message:', frame)


async def recv_loop(ws):
    async for text in ws:
        try:
            show(decode_frame(text))
        except FrameError:
            print('[CLIENT] malformed frame from server')
    print('Server closed the connection')


async def input_loop(ws):
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            return
        line = line.strip()
        if not line:
            continue
        if line == '/quit':
            return
        if line.startswith('/add '):
            await ws.send(encode_frame(ADD_FRIEND, line[5:].strip(), next(_request_ids)))
        elif line.startswith('/msg '):
            parts = line[5:].split(' ', 1)
            if len(parts) != 2:
                print('usage: /msg CODE text')
                continue
            await ws.send(encode_frame(PRIVATE_MESSAGE, {'toCode': parts[0], 'message': parts[1]}))
        else:
            print('commands: /add CODE, /msg CODE text, /quit')


async def run_client(url, name, code=None):
    async with websockets.connect(url) as ws:
        identity = {'username': name, 'code': code} if code else name
        await ws.send(encode_frame(REGISTER, identity, next(_request_ids)))
        receiver = asyncio.create_task(recv_loop(ws))
        try:
            await input_loop(ws)
        finally:
            receiver.cancel()


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--name', required=True)
    parser.add_argument('--code', help='friend code from /api/login (pre-authenticated register)')
    parser.add_argument('--url', default=URL)
    args = parser.parse_args()
    asyncio.run(run_client(args.url, args.name, args.code))
