"""Rewriting of game server configuration files from replacement rules."""