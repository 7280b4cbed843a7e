"""YAML 场景流水线"""
