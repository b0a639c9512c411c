"""共享目录的存储层：路径解析、根目录注册表、列表、打包与 WebDAV 提供者"""
