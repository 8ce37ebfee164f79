"""Library Records - Kütüphane kayıt servisi

Bu paket şu modülleri içerir:
- Yapılandırma (config.py)
- Hata sınıflandırması (exceptions.py)
- Veritabanı katmanı ve bağlantı havuzu (database.py)
- Doğrulama motoru (validators.py)
- Kayıt servisi (records.py)
- Raporlama motoru (reports.py)
- API uç noktaları (api.py)
- CLI arayüzü (cli.py)
"""

__version__ = "1.0.0"
