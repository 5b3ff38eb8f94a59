"""Shared settings and logging for the pipeline compiler and its CLI"""
